"""
Runtime Configuration Store.

Settings come from the ``[tool.chaincodify]`` table of the nearest
``pyproject.toml`` (searched upward from the input package), overridden by
explicit arguments (usually CLI flags).

.. code-block:: toml

    [tool.chaincodify]
    suffix = "blockchainized"
    variant = "multi_instance"
    failure_policy = "skip"

    [tool.chaincodify.call_rewrites]
    "this.status" = "console.log({arg});"
"""

import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from chaincodify.enums import ContractVariant, FailurePolicy

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

_SUFFIX_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_$][\w$]*$")


class RuntimeConfig(BaseModel):
  """
  Global configuration container for a conversion run.
  """

  suffix: str = Field("blockchainized", description="Suffix appended to node type names and files.")
  category: Optional[str] = Field(None, description="Palette category of converted nodes (defaults to the suffix).")
  variant: ContractVariant = Field(ContractVariant.MULTI_INSTANCE, description="Contract lifecycle to generate.")
  class_name: str = Field("Chaincode", description="Name of the generated contract class.")
  emit_javascript: bool = Field(True, description="Also lower the contract to CommonJS (dist/index.js).")
  proxy_nodes: bool = Field(True, description="Replace node bodies with a ledger proxy.")
  failure_policy: FailurePolicy = Field(FailurePolicy.ABORT, description="Batch behaviour when a node fails.")
  ledger_endpoint_env: str = Field(
    "STATUS_LEDGER_ENDPOINT", description="Environment variable holding the ledger middleware host."
  )
  call_rewrites: Dict[str, str] = Field(default_factory=dict, description="Extra callee -> replacement templates.")

  @field_validator("suffix")
  @classmethod
  def validate_suffix(cls, v: str) -> str:
    """
    Ensures the suffix can be embedded in type names, file names and package names.

    Raises:
        ValueError: If the suffix is empty or contains other characters than
            letters, digits and underscores.
    """
    v_clean = v.strip()
    if not _SUFFIX_PATTERN.match(v_clean):
      raise ValueError(f"Invalid suffix '{v}'. Use letters, digits and underscores only.")
    return v_clean

  @field_validator("class_name")
  @classmethod
  def validate_class_name(cls, v: str) -> str:
    if not _IDENTIFIER_PATTERN.match(v):
      raise ValueError(f"Invalid class name '{v}'.")
    return v

  @field_validator("call_rewrites")
  @classmethod
  def validate_call_rewrites(cls, v: Dict[str, str]) -> Dict[str, str]:
    for callee, template in v.items():
      if not template.strip():
        raise ValueError(f"Empty rewrite template for '{callee}'.")
    return v

  @property
  def effective_category(self) -> str:
    return self.category or self.suffix

  @classmethod
  def load(
    cls,
    suffix: Optional[str] = None,
    category: Optional[str] = None,
    variant: Optional[str] = None,
    class_name: Optional[str] = None,
    emit_javascript: Optional[bool] = None,
    proxy_nodes: Optional[bool] = None,
    failure_policy: Optional[str] = None,
    search_path: Optional[Path] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and applies explicit overrides.

    Args:
        suffix: Override for the rename suffix.
        category: Override for the palette category.
        variant: Override for the contract variant.
        class_name: Override for the contract class name.
        emit_javascript: Override for the CommonJS lowering switch.
        proxy_nodes: Override for the ledger proxy switch.
        failure_policy: Override for the batch failure policy.
        search_path: Directory to start searching for TOML config.

    Returns:
        RuntimeConfig: The fully resolved configuration object.
    """
    toml_config, _ = _load_toml_settings(search_path or Path.cwd())
    overrides = {
      "suffix": suffix,
      "category": category,
      "variant": variant,
      "class_name": class_name,
      "emit_javascript": emit_javascript,
      "proxy_nodes": proxy_nodes,
      "failure_policy": failure_policy,
    }
    merged: Dict[str, Any] = dict(toml_config)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return cls(**merged)


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches ``start_path`` and its parents for 'pyproject.toml' and extracts ``[tool.chaincodify]``.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory it was found in.
  """
  current = start_path.resolve()
  if current.is_file():
    current = current.parent

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None
      return data.get("tool", {}).get("chaincodify", {}), parent

  return {}, None
