"""
Rewriting passes over node module trees.

Modules:

- `extractors`: locate the export, the node definition and its handlers.
- `statements`: table-driven call rewriting.
- `scopes`: lexical scope analysis backing alias detection.
- `aliases`: collapse receiver/config aliases.
- `requires`: ``require`` to ``import`` and ``RED.nodes.*`` cleanup.
- `merge`: copy the extracted logic into a contract skeleton.
"""

from chaincodify.core.rewriter.aliases import (
  collapse_aliases,
  ensure_environment_consistency,
  erase_reassignments,
  find_references,
  rename_binding,
)
from chaincodify.core.rewriter.extractors import (
  ExportDescriptor,
  ExtractedLogic,
  Handler,
  extract_contents,
  extract_export,
  extract_handlers,
)
from chaincodify.core.rewriter.merge import add_logic_to_skeleton
from chaincodify.core.rewriter.requires import convert_requires_to_imports, remove_registration_statements
from chaincodify.core.rewriter.scopes import Binding, ScopeAnalyzer
from chaincodify.core.rewriter.statements import CALL_REWRITES, replace_safely, transform_logic

__all__ = [
  "Binding",
  "CALL_REWRITES",
  "ExportDescriptor",
  "ExtractedLogic",
  "Handler",
  "ScopeAnalyzer",
  "add_logic_to_skeleton",
  "collapse_aliases",
  "convert_requires_to_imports",
  "ensure_environment_consistency",
  "erase_reassignments",
  "extract_contents",
  "extract_export",
  "extract_handlers",
  "find_references",
  "remove_registration_statements",
  "rename_binding",
  "replace_safely",
  "transform_logic",
]
