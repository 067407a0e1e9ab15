"""
Conversion Trace Logger.

Records what the pipeline did to one node module:

1. Phases (Parsing, Alias Resolution, Merge, ...), nested.
2. Syntax mutations (statement ``A`` rewritten to ``B``).
3. Renames (``lower-case`` -> ``lower-case-blockchainized``).
4. Warnings that did not stop the conversion.

Events are plain dictionaries once exported, ready for ``json.dump``.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TraceEventType(str, Enum):
  PHASE_START = "phase_start"
  PHASE_END = "phase_end"
  SYNTAX_MUTATION = "syntax_mutation"
  RENAME = "rename"
  WARNING = "warning"


@dataclass
class TraceEvent:
  id: str
  type: TraceEventType
  timestamp: float
  description: str
  parent_id: Optional[str] = None
  metadata: Dict[str, Any] = field(default_factory=dict)


class TraceLogger:
  """
  Collects trace events for one conversion.

  The engine resets the global tracer per module; rewriting passes reach it
  through `get_tracer`.
  """

  def __init__(self) -> None:
    self._events: List[TraceEvent] = []
    self._active_phases: List[str] = []

  def _parent(self) -> Optional[str]:
    return self._active_phases[-1] if self._active_phases else None

  def start_phase(self, name: str, description: str = "") -> str:
    """Opens a nested phase and returns its id."""
    phase_id = str(uuid.uuid4())
    self._events.append(
      TraceEvent(
        id=phase_id,
        type=TraceEventType.PHASE_START,
        timestamp=time.time(),
        description=name,
        parent_id=self._parent(),
        metadata={"detail": description},
      )
    )
    self._active_phases.append(phase_id)
    return phase_id

  def end_phase(self) -> None:
    if not self._active_phases:
      return
    phase_id = self._active_phases.pop()
    self._events.append(
      TraceEvent(
        id=str(uuid.uuid4()),
        type=TraceEventType.PHASE_END,
        timestamp=time.time(),
        description="End Phase",
        parent_id=phase_id,
      )
    )

  def close_phases(self) -> None:
    """Ends every open phase, innermost first."""
    while self._active_phases:
      self.end_phase()

  def log_mutation(self, node_type: str, before: str, after: str) -> None:
    self._log(TraceEventType.SYNTAX_MUTATION, f"Rewrote {node_type}", {"before": before, "after": after})

  def log_rename(self, before: str, after: str) -> None:
    self._log(TraceEventType.RENAME, f"Renamed {before} -> {after}", {"before": before, "after": after})

  def log_warning(self, message: str) -> None:
    self._log(TraceEventType.WARNING, message, {"level": "warning"})

  def _log(self, event_type: TraceEventType, description: str, metadata: Dict[str, Any]) -> None:
    self._events.append(
      TraceEvent(
        id=str(uuid.uuid4()),
        type=event_type,
        timestamp=time.time(),
        description=description,
        parent_id=self._parent(),
        metadata=metadata,
      )
    )

  @property
  def events(self) -> List[TraceEvent]:
    return list(self._events)

  def export(self) -> List[Dict[str, Any]]:
    """Returns the events as JSON-serializable dictionaries."""
    exported = []
    for event in self._events:
      data = asdict(event)
      data["type"] = event.type.value
      exported.append(data)
    return exported


_GLOBAL_TRACER = TraceLogger()


def get_tracer() -> TraceLogger:
  return _GLOBAL_TRACER


def reset_tracer() -> TraceLogger:
  global _GLOBAL_TRACER
  _GLOBAL_TRACER = TraceLogger()
  return _GLOBAL_TRACER
