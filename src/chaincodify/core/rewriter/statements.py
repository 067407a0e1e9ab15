"""
Statement Transformer.

Rewrites node runtime calls into their contract runtime equivalents using an
explicit table keyed by the normalized callee path:

=================  ==========================
Callee             Replacement
=================  ==========================
``this.send(a)``   ``return a;``
``this.done(a)``   ``return a;``
``this.error(a)``  ``console.error(a);``
``this.warn(a)``   ``console.warn(a);``
``this.log(a)``    ``console.log(a);``
``this.debug(a)``  ``console.debug(a);``
``this.trace(a)``  ``console.trace(a);``
=================  ==========================

Only the first argument's text is threaded into the replacement. Calls
without arguments and callees missing from the table are left verbatim.

The walk is post-order: each pass rewrites the innermost matching statements
(a match whose subtree holds another match waits for the next pass), and
passes repeat until nothing matches.
"""

from typing import Dict, List, Mapping, Optional

import tree_sitter

from chaincodify.core.rewriter.extractors import call_arguments, callee_text, statement_call
from chaincodify.core.syntax.tree import DetachedNodeError, Edit, NodeHandle, SourceTree, Target, walk_post_order
from chaincodify.core.tracer import get_tracer

CALL_REWRITES: Dict[str, str] = {
  "this.send": "return {arg};",
  "this.done": "return {arg};",
  "this.error": "console.error({arg});",
  "this.warn": "console.warn({arg});",
  "this.log": "console.log({arg});",
  "this.debug": "console.debug({arg});",
  "this.trace": "console.trace({arg});",
}

# Guards against configured rewrites whose output matches the table again.
_MAX_PASSES = 64


def rewrite_table(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
  """Default table merged with configured entries (configured entries win)."""
  table = dict(CALL_REWRITES)
  if extra:
    table.update(extra)
  return table


def rewrite_statement(tree: SourceTree, statement: tree_sitter.Node, table: Mapping[str, str]) -> Optional[str]:
  """
  Computes the replacement text for one statement.

  Args:
      tree: Tree owning the statement.
      statement: Candidate statement node.
      table: Callee path to replacement template (``{arg}`` placeholder).

  Returns:
      Optional[str]: Replacement text, or None when the statement is left as is.
  """
  call = statement_call(statement)
  if call is None:
    return None
  template = table.get(callee_text(tree, call))
  if template is None:
    return None
  args = call_arguments(call)
  if not args:
    return None
  return template.replace("{arg}", tree.node_text(args[0]))


def replace_safely(tree: SourceTree, target: Target, text: str) -> bool:
  """
  Replaces ``target`` unless it is detached or has no parent.

  Returns:
      bool: True when the replacement landed.
  """
  if isinstance(target, NodeHandle) and not target.attached:
    return False
  try:
    node = tree.resolve(target)
  except DetachedNodeError:
    return False
  if node.parent is None:
    return False
  return tree.replace(node, text)


def _contains(outer: tree_sitter.Node, inner: tree_sitter.Node) -> bool:
  return outer.start_byte <= inner.start_byte and inner.end_byte <= outer.end_byte


def _pass_edits(tree: SourceTree, scope: tree_sitter.Node, table: Mapping[str, str]) -> List[Edit]:
  selected: List[tree_sitter.Node] = []
  edits: List[Edit] = []
  for node in walk_post_order(scope):
    if node.type != "expression_statement" or node.parent is None:
      continue
    replacement = rewrite_statement(tree, node, table)
    if replacement is None:
      continue
    if any(_contains(node, inner) for inner in selected):
      continue
    selected.append(node)
    edits.append(Edit(node.start_byte, node.end_byte, replacement))
  return edits


def transform_logic(
  tree: SourceTree,
  scope: Optional[Target] = None,
  rewrites: Optional[Mapping[str, str]] = None,
) -> int:
  """
  Rewrites every matching call statement below ``scope`` until none is left.

  Args:
      tree: Tree to mutate.
      scope: Subtree to transform (node or handle). Defaults to the whole tree.
      rewrites: Extra table entries merged over `CALL_REWRITES`.

  Returns:
      int: Number of statements rewritten. Zero on a second run.
  """
  table = rewrite_table(rewrites)
  tracer = get_tracer()
  scope_handle = tree.handle(scope) if scope is not None else None
  total = 0

  for _ in range(_MAX_PASSES):
    if scope_handle is not None and not scope_handle.attached:
      break
    root = scope_handle.node if scope_handle is not None else tree.root
    edits = _pass_edits(tree, root, table)
    if not edits:
      break
    for edit in edits:
      tracer.log_mutation("expression_statement", tree.source[edit.start : edit.end].decode("utf-8"), edit.text)
    total += tree.apply_edits(edits)
  else:
    tracer.log_warning(f"Call rewriting did not settle after {_MAX_PASSES} passes")

  return total
