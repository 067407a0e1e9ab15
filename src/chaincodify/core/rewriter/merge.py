"""
Logic Merge.

Copies the extracted node logic into the ``_internalLogic`` body of a contract
skeleton. Statements move between trees as text: each one is re-indented for
its new position and the skeleton is re-parsed after the insertion.

The merged body is, in order:

1.  The ambient statements of the node definition.
2.  One ``this._cleanups.add(...)`` registration per ``close`` handler.
3.  The statements of every ``input`` handler.

Cleanup registrations precede the input statements whatever order the
handlers were registered in, so that an early ``return`` (a rewritten
``send``) cannot skip them.
"""

from typing import List

import tree_sitter

from chaincodify.core.errors import IncompatibleFormatError, MissingHandlerError
from chaincodify.core.rewriter.aliases import rename_binding
from chaincodify.core.rewriter.extractors import ExtractedLogic, Handler, function_body
from chaincodify.core.skeleton import ChaincodeSkeleton
from chaincodify.core.syntax.formatting import relocated_text
from chaincodify.core.syntax.tree import SourceTree
from chaincodify.core.syntax.writer import INDENT
from chaincodify.core.tracer import get_tracer

INPUT_EVENT = "input"
CLOSE_EVENT = "close"
SUPPORTED_EVENTS = (INPUT_EVENT, CLOSE_EVENT)

CLEANUP_OPEN = "this._cleanups.add((removed = true, done = () => {}) => {"
CLEANUP_CLOSE = "});"

# Parameter names the merged statements can rely on, by event.
_PARAMETERS = {
  INPUT_EVENT: ("msg",),
  CLOSE_EVENT: ("removed", "done"),
}


def _canonical_parameters(event: str, count: int) -> List[str]:
  names = list(_PARAMETERS[event])
  # Node-RED passes only `done` to single-parameter close handlers.
  if event == CLOSE_EVENT and count == 1:
    return ["done"]
  return names[:count]


def _identifier_parameters(function: tree_sitter.Node) -> List[tree_sitter.Node]:
  single = function.child_by_field_name("parameter")
  if single is not None:
    return [single]
  params = function.child_by_field_name("parameters")
  return [p for p in params.named_children if p.type == "identifier"] if params is not None else []


def _normalize_parameters(tree: SourceTree, handler: Handler) -> None:
  """Renames handler parameters to the names the contract scope provides."""
  targets = _canonical_parameters(handler.event, len(_identifier_parameters(handler.function.node)))
  for index, name in enumerate(targets):
    # Every rename re-parses the tree, so the parameters are looked up again.
    current = _identifier_parameters(handler.function.node)
    if index < len(current) and tree.node_text(current[index]) != name:
      rename_binding(tree, current[index], name)


def _handler_lines(tree: SourceTree, handler: Handler, indent: str) -> List[str]:
  body = function_body(handler.function.node)
  if body is None:
    raise IncompatibleFormatError(f"Unexpected syntax found in a '{handler.event}' handler")
  return [relocated_text(tree, statement, indent) for statement in body.named_children]


def validate_events(logic: ExtractedLogic) -> None:
  """
  Checks that the handlers can be expressed in the contract.

  Raises:
      IncompatibleFormatError: If a handler for another event than ``input``
          or ``close`` is registered.
      MissingHandlerError: If no ``input`` handler is registered.
  """
  for event in logic.handlers:
    if event not in SUPPORTED_EVENTS:
      raise IncompatibleFormatError(f"Unexpected handler found: {event}")
  if INPUT_EVENT not in logic.handlers:
    raise MissingHandlerError("The node registers no 'input' handler")


def add_logic_to_skeleton(skeleton: ChaincodeSkeleton, logic: ExtractedLogic) -> int:
  """
  Merges ambient and handler statements into the skeleton's logic body.

  Args:
      skeleton: Target contract.
      logic: Output of `extract_handlers` on the source tree.

  Returns:
      int: Number of statements (and cleanup registrations) added.

  Raises:
      IncompatibleFormatError: On unsupported events or handler shapes.
      MissingHandlerError: If there is no ``input`` handler.
  """
  validate_events(logic)
  source = logic.tree
  target = skeleton.tree

  for handlers in logic.handlers.values():
    for handler in handlers:
      _normalize_parameters(source, handler)

  body = skeleton.body.node
  indent = target.line_indent(body.start_byte) + INDENT

  blocks: List[str] = [relocated_text(source, statement.node, indent) for statement in logic.ambient]

  for handler in logic.handlers.get(CLOSE_EVENT, []):
    lines = [indent + CLEANUP_OPEN]
    lines.extend(_handler_lines(source, handler, indent + INDENT))
    lines.append(indent + CLEANUP_CLOSE)
    blocks.append("\n".join(lines))

  for handler in logic.handlers[INPUT_EVENT]:
    blocks.extend(_handler_lines(source, handler, indent))

  if not blocks:
    return 0

  children = body.named_children
  offset = children[-1].end_byte if children else body.start_byte + 1
  target.insert(offset, "\n" + "\n".join(blocks))
  get_tracer().log_mutation("statement_block", f"{skeleton.class_name}._internalLogic", f"{len(blocks)} statements")
  return len(blocks)
