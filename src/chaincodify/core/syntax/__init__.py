"""
Syntax Tree Builder package.

Re-exports the tree model and the text round-trip helpers.
"""

from chaincodify.core.syntax.formatting import format_text, format_tree, relocated_text
from chaincodify.core.syntax.tree import (
  DetachedNodeError,
  Edit,
  NodeHandle,
  SourceTree,
  load_source,
  parse_source,
  walk,
  walk_post_order,
)
from chaincodify.core.syntax.writer import CodeWriter

__all__ = [
  "CodeWriter",
  "DetachedNodeError",
  "Edit",
  "NodeHandle",
  "SourceTree",
  "format_text",
  "format_tree",
  "load_source",
  "parse_source",
  "relocated_text",
  "walk",
  "walk_post_order",
]
