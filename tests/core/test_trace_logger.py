"""
Tests for the Tracing System.
"""

import json

from chaincodify.core.tracer import TraceEventType, TraceLogger, get_tracer, reset_tracer


def test_phase_nesting():
  logger = TraceLogger()

  p1 = logger.start_phase("Parent")
  logger.start_phase("Child")
  logger.end_phase()  # End Child
  logger.end_phase()  # End Parent

  events = logger.export()

  # 4 events: Start P, Start C, End C, End P
  assert len(events) == 4
  assert events[0]["type"] == TraceEventType.PHASE_START
  assert events[1]["parent_id"] == p1
  assert events[2]["type"] == TraceEventType.PHASE_END
  assert events[3]["parent_id"] == p1


def test_close_phases_ends_innermost_first():
  logger = TraceLogger()
  outer = logger.start_phase("Outer")
  inner = logger.start_phase("Inner")

  logger.close_phases()

  ends = [e["parent_id"] for e in logger.export() if e["type"] == TraceEventType.PHASE_END]
  assert ends == [inner, outer]
  logger.end_phase()  # nothing open: no-op
  assert len(logger.events) == 4


def test_rename_and_mutation_metadata():
  """Verify renames and mutations record before/after and their phase."""
  logger = TraceLogger()
  phase = logger.start_phase("Registration")
  logger.log_rename("'lower-case'", "'lower-case-chain'")
  logger.log_mutation("expression_statement", "this.send(msg);", "return msg;")

  rename, mutation = logger.export()[1:]
  assert rename["type"] == TraceEventType.RENAME
  assert rename["metadata"] == {"before": "'lower-case'", "after": "'lower-case-chain'"}
  assert rename["parent_id"] == phase
  assert mutation["description"] == "Rewrote expression_statement"


def test_export_is_json_serializable():
  logger = TraceLogger()
  logger.start_phase("P", "detail")
  logger.log_warning("careful")

  events = json.loads(json.dumps(logger.export()))
  assert events[1]["metadata"] == {"level": "warning"}
  assert events[0]["metadata"] == {"detail": "detail"}


def test_reset_replaces_global_tracer():
  first = get_tracer()
  first.log_warning("x")

  second = reset_tracer()

  assert second is get_tracer()
  assert second is not first
  assert second.events == []
