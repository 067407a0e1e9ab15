"""
Conversion output model.

`ConversionResult` carries everything the engine produced for one node module:
the contract source, the rewritten registration artifacts, errors and the
execution trace. Nothing in it has been written to disk yet.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RegistrationIdentity(BaseModel):
  """Identity of a node before and after conversion."""

  original_name: str = Field(description="Type name the node registered with.")
  new_name: str = Field(description="Suffixed type name of the converted node.")
  category: str = Field(description="Palette category of the converted node.")
  label: Optional[str] = Field(default=None, description="Palette label; defaults to the new name.")


class ConversionResult(BaseModel):
  """
  Result of converting one node module.
  """

  node: str = Field(default="", description="Original node type name.")
  code: str = Field(default="", description="TypeScript source of the generated contract.")
  javascript: Optional[str] = Field(default=None, description="CommonJS lowering of `code`, when requested.")
  identity: Optional[RegistrationIdentity] = Field(default=None, description="Rename applied to the node.")
  node_code: Optional[str] = Field(default=None, description="Rewritten node module (ledger proxy).")
  markup: Optional[str] = Field(default=None, description="Rewritten companion .html document.")
  errors: List[str] = Field(default_factory=list, description="Error messages encountered.")
  error_type: Optional[str] = Field(default=None, description="Class name of the fatal error, if any.")
  success: bool = Field(default=True, description="False when a fatal error stopped the conversion.")
  trace_events: List[Dict[str, Any]] = Field(default_factory=list, description="Execution trace log data.")

  @property
  def has_errors(self) -> bool:
    """
    Check if the result contains any error messages.

    Returns:
        True if one or more errors are present.
    """
    return len(self.errors) > 0
