"""
Export and Handler Extraction.

Locates the structural conventions of a node module:

.. code-block:: javascript

    module.exports = function (RED) {         // export assignment
      function MyNode(config) {               // node definition
        RED.nodes.createNode(this, config);   // ambient
        this.on("input", function (msg) {...}); // handler "input"
        this.on("close", function () {...});     // handler "close"
      }
      RED.nodes.registerType("my-node", MyNode);
    };

1.  `extract_export` finds the assignment. Absence is reported as ``None``.
2.  `extract_contents` descends into the node definition and its body, raising
    `IncompatibleFormatError` when the shape does not match.
3.  `extract_handlers` splits the body's direct statements into ambient
    statements and lifecycle handlers keyed by event name.

Callee matching is textual: a statement is a handler registration when its
callee text starts with ``this.on``.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import tree_sitter

from chaincodify.core.errors import IncompatibleFormatError
from chaincodify.core.syntax.tree import NodeHandle, SourceTree, Target, walk

EXPORT_SENTINEL = "module.exports"
HANDLER_PREFIX = "this.on"

FUNCTION_KINDS = frozenset({"function_expression", "function"})
CALLABLE_KINDS = FUNCTION_KINDS | {"arrow_function"}


@dataclass(frozen=True)
class ExportDescriptor:
  """
  Handles to the export assignment and, once `extract_contents` ran, to the
  node definition it wraps.

  Attributes:
      tree: Tree holding the module.
      assignment: The ``module.exports = ...`` assignment expression.
      left_text: Text of the assignment target (always ``module.exports``).
      function: Right-hand function expression.
      definition: Inner named function declaration.
      body: Statement block of the definition.
  """

  tree: SourceTree
  assignment: NodeHandle
  left_text: str
  function: Optional[NodeHandle] = None
  definition: Optional[NodeHandle] = None
  body: Optional[NodeHandle] = None

  @property
  def name(self) -> str:
    """Name of the node definition, or an empty string before extraction."""
    if self.definition is None:
      return ""
    name_node = self.definition.node.child_by_field_name("name")
    return self.tree.node_text(name_node) if name_node else ""


@dataclass
class Handler:
  """
  One lifecycle handler registered with ``this.on(event, fn)``.

  Attributes:
      event: Unquoted event name.
      registration: The ``this.on(...)`` expression statement.
      function: Handler function (function expression or arrow function).
      params: Parameter names, in order.
      statements: Direct statements of the handler body.
  """

  event: str
  registration: NodeHandle
  function: NodeHandle
  params: List[str] = field(default_factory=list)
  statements: List[NodeHandle] = field(default_factory=list)


@dataclass
class ExtractedLogic:
  """Ambient statements plus handlers grouped by event, both in source order."""

  tree: SourceTree
  ambient: List[NodeHandle] = field(default_factory=list)
  handlers: Dict[str, List[Handler]] = field(default_factory=dict)

  @property
  def events(self) -> List[str]:
    return list(self.handlers)


def _top_level_statements(tree: SourceTree) -> List[tree_sitter.Node]:
  return [node for node in tree.root.named_children if node.type == "expression_statement"]


def extract_export(tree: SourceTree) -> Optional[ExportDescriptor]:
  """
  Finds the first top-level ``module.exports = ...`` assignment.

  Args:
      tree: Parsed module.

  Returns:
      Optional[ExportDescriptor]: The descriptor, or None if the module has no
      export assignment.
  """
  for statement in _top_level_statements(tree):
    expression = statement.named_children[0] if statement.named_children else None
    if expression is None or expression.type != "assignment_expression":
      continue
    left = expression.child_by_field_name("left")
    if left is None:
      continue
    left_text = "".join(tree.node_text(left).split())
    if left_text == EXPORT_SENTINEL:
      return ExportDescriptor(tree=tree, assignment=tree.handle(expression), left_text=left_text)
  return None


def extract_contents(export: ExportDescriptor) -> ExportDescriptor:
  """
  Descends into the export to the node definition and its body.

  Args:
      export: Descriptor from `extract_export`.

  Returns:
      ExportDescriptor: A copy with ``function``, ``definition`` and ``body`` set.

  Raises:
      IncompatibleFormatError: If the right side is not a function expression,
          holds no named function declaration, or the declaration has no body.
  """
  tree = export.tree
  right = export.assignment.node.child_by_field_name("right")
  while right is not None and right.type == "parenthesized_expression":
    right = right.named_children[0] if right.named_children else None

  if right is None or right.type not in FUNCTION_KINDS:
    raise IncompatibleFormatError("The exported value is not a function expression")

  definition = None
  for candidate in walk(right):
    if candidate.type == "function_declaration" and candidate.child_by_field_name("name") is not None:
      definition = candidate
      break
  if definition is None:
    raise IncompatibleFormatError("No named node definition found inside the exported function")

  body = definition.child_by_field_name("body")
  if body is None or body.type != "statement_block":
    raise IncompatibleFormatError("The node definition has no body")

  return replace(
    export,
    function=tree.handle(right),
    definition=tree.handle(definition),
    body=tree.handle(body),
  )


def callee_text(tree: SourceTree, call: tree_sitter.Node) -> str:
  """Callee of a call expression with whitespace removed (``this . on`` -> ``this.on``)."""
  callee = call.child_by_field_name("function")
  if callee is None:
    return ""
  return "".join(tree.node_text(callee).split())


def call_arguments(call: tree_sitter.Node) -> List[tree_sitter.Node]:
  """Argument expressions of a call, comments excluded."""
  arguments = call.child_by_field_name("arguments")
  if arguments is None:
    return []
  return [arg for arg in arguments.named_children if arg.type != "comment"]


def statement_call(statement: tree_sitter.Node) -> Optional[tree_sitter.Node]:
  """The call expression an expression statement consists of, if any."""
  if statement.type != "expression_statement" or not statement.named_children:
    return None
  expression = statement.named_children[0]
  return expression if expression.type == "call_expression" else None


def function_body(function: tree_sitter.Node) -> Optional[tree_sitter.Node]:
  body = function.child_by_field_name("body")
  if body is None or body.type != "statement_block":
    return None
  return body


def parameter_names(tree: SourceTree, function: tree_sitter.Node) -> List[str]:
  """Names of the declared parameters of a function, in order."""
  single = function.child_by_field_name("parameter")
  if single is not None:
    return [tree.node_text(single)]
  params = function.child_by_field_name("parameters")
  if params is None:
    return []
  names = []
  for param in params.named_children:
    if param.type == "comment":
      continue
    if param.type == "identifier":
      names.append(tree.node_text(param))
    elif param.type == "assignment_pattern":
      left = param.child_by_field_name("left")
      names.append(tree.node_text(left) if left is not None else tree.node_text(param))
    else:
      names.append(tree.node_text(param))
  return names


def _event_name(tree: SourceTree, node: tree_sitter.Node) -> str:
  return tree.node_text(node).strip().strip("'\"`")


def _as_handler(tree: SourceTree, statement: tree_sitter.Node) -> Optional[Handler]:
  call = statement_call(statement)
  if call is None or not callee_text(tree, call).startswith(HANDLER_PREFIX):
    return None
  args = call_arguments(call)
  if len(args) < 2 or args[1].type not in CALLABLE_KINDS:
    return None
  function = args[1]
  body = function_body(function)
  if body is None:
    return None
  return Handler(
    event=_event_name(tree, args[0]),
    registration=tree.handle(statement),
    function=tree.handle(function),
    params=parameter_names(tree, function),
    statements=[tree.handle(s) for s in body.named_children],
  )


def extract_handlers(tree: SourceTree, body: Target) -> ExtractedLogic:
  """
  Splits the direct statements of ``body`` into ambient statements and handlers.

  Args:
      tree: Tree holding the body.
      body: Statement block of the node definition.

  Returns:
      ExtractedLogic: Ambient statements in order (handler registrations
      excluded) and handlers grouped by event name in order of appearance.
  """
  block = tree.resolve(body)
  logic = ExtractedLogic(tree=tree)
  for statement in block.named_children:
    handler = _as_handler(tree, statement)
    if handler is None:
      logic.ambient.append(tree.handle(statement))
      continue
    logic.handlers.setdefault(handler.event, []).append(handler)
  return logic
