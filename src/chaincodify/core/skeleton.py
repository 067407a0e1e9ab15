"""
Contract Skeleton Factory.

Builds the TypeScript source of the destination contract class from nothing
and parses it, returning handles to the only places the rest of the pipeline
mutates.

Two lifecycle variants exist, selected through `ContractVariant`:

1.  **Single invocation**: state fields ``_msg``, ``_config``, ``_cleanups``
    and ``_result``; entry points ``apply(ctx, msg, config)``, ``dispose()``
    and the ``getResult(ctx)`` query.
2.  **Multi instance**: an ``_instances`` map from instance id to a logic
    closure plus ``_cleanups`` and ``_result``; entry points
    ``initInstance(ctx, config, instanceId)``,
    ``runInstance(ctx, msg, instanceId)``, ``getResult(ctx)`` and ``dispose()``.

Both variants share the ``_internalLogic(msg, config)`` method, whose body
receives the merged node statements.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from chaincodify.core.syntax.tree import NodeHandle, SourceTree, parse_source
from chaincodify.core.syntax.writer import CodeWriter
from chaincodify.enums import ContractVariant

LOGIC_METHOD = "_internalLogic"
CONTRACT_IMPORT = "import { Contract, type Context } from 'fabric-contract-api';"
CLEANUP_TYPE = "(removed?: true, done?: () => void) => void"

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
_RESERVED = frozenset(
  {
    "break", "case", "catch", "class", "const", "continue", "debugger", "default", "delete", "do",
    "else", "enum", "export", "extends", "false", "finally", "for", "function", "if", "import",
    "in", "instanceof", "new", "null", "return", "super", "switch", "this", "throw", "true",
    "try", "typeof", "var", "void", "while", "with", "yield", "let", "static", "implements",
    "interface", "package", "private", "protected", "public", "await",
  }
)  # fmt: skip


@dataclass
class ChaincodeSkeleton:
  """
  Handles into a freshly built contract tree.

  Attributes:
      variant: Lifecycle variant the class implements.
      tree: TypeScript tree holding the class.
      class_node: The class declaration.
      logic: The ``_internalLogic`` method.
      body: Statement block of ``_internalLogic``; merged statements go here.
      instances: The ``_instances`` field (multi-instance variant only).
      entry_points: Public methods by name.
  """

  variant: ContractVariant
  tree: SourceTree
  class_node: NodeHandle
  logic: NodeHandle
  body: NodeHandle
  instances: Optional[NodeHandle] = None
  entry_points: Dict[str, NodeHandle] = field(default_factory=dict)

  @property
  def class_name(self) -> str:
    name = self.class_node.node.child_by_field_name("name")
    return self.tree.node_text(name) if name is not None else ""


def _write_cleanups(w: CodeWriter) -> None:
  with w.block("public dispose() {"):
    with w.block("for (const cleanup of this._cleanups) {"):
      w.line("cleanup(true, () => {});")
    w.line("this._cleanups.clear();")


def _write_result_query(w: CodeWriter) -> None:
  with w.block("public async getResult(ctx: Context) {"):
    w.line("const resultAsBytes = await ctx.stub.getState('result');")
    with w.block("if (!resultAsBytes || resultAsBytes.length === 0) {"):
      w.line("throw new Error('Result does not exist');")
    w.line("return JSON.parse(resultAsBytes.toString());")


def _write_store_result(w: CodeWriter) -> None:
  w.line("await ctx.stub.putState('result', Buffer.from(JSON.stringify(this._result ?? null)));")


def _write_single_invocation(w: CodeWriter) -> None:
  w.line("private _msg = {};")
  w.line("private _config = {};")
  w.line(f"private _cleanups = new Set<{CLEANUP_TYPE}>();")
  w.line("private _result;")
  w.blank()
  with w.block(f"private {LOGIC_METHOD}(msg, config = this._config) {{"):
    pass
  w.blank()
  with w.block("private _run = () => {", "};"):
    w.line(f"this._result = this.{LOGIC_METHOD}(this._msg, this._config);")
  w.blank()
  with w.block("public async apply(ctx: Context, msg: string, config: string) {"):
    w.line("this._msg = JSON.parse(msg);")
    w.line("this._config = JSON.parse(config);")
    w.line("this._run();")
    _write_store_result(w)
    w.line("return this._result;")
  w.blank()
  _write_cleanups(w)
  w.blank()
  _write_result_query(w)


def _write_multi_instance(w: CodeWriter) -> None:
  w.line("private _instances = new Map<string, (msg: unknown) => unknown>();")
  w.line(f"private _cleanups = new Set<{CLEANUP_TYPE}>();")
  w.line("private _result;")
  w.blank()
  with w.block(f"private {LOGIC_METHOD}(msg, config) {{"):
    pass
  w.blank()
  with w.block("public async initInstance(ctx: Context, config: string, instanceId: string) {"):
    w.line("const parsed = JSON.parse(config);")
    w.line("await ctx.stub.putState(`config:${instanceId}`, Buffer.from(JSON.stringify(parsed)));")
    w.line(f"this._instances.set(instanceId, (msg) => this.{LOGIC_METHOD}(msg, parsed));")
  w.blank()
  with w.block("public async runInstance(ctx: Context, msg: string, instanceId: string) {"):
    w.line("let logic = this._instances.get(instanceId);")
    with w.block("if (!logic) {"):
      w.line("const stored = await ctx.stub.getState(`config:${instanceId}`);")
      with w.block("if (!stored || stored.length === 0) {"):
        w.line("throw new Error(`Instance ${instanceId} is not initialised`);")
      w.line("const config = JSON.parse(stored.toString());")
      w.line(f"logic = (message) => this.{LOGIC_METHOD}(message, config);")
      w.line("this._instances.set(instanceId, logic);")
    w.line("this._result = logic(JSON.parse(msg));")
    _write_store_result(w)
    w.line("return this._result;")
  w.blank()
  _write_result_query(w)
  w.blank()
  _write_cleanups(w)


_BUILDERS: Dict[ContractVariant, Callable[[CodeWriter], None]] = {
  ContractVariant.SINGLE_INVOCATION: _write_single_invocation,
  ContractVariant.MULTI_INSTANCE: _write_multi_instance,
}


def skeleton_source(variant: ContractVariant, class_name: str = "Chaincode") -> str:
  """
  Renders the contract source for ``variant``.

  Raises:
      ValueError: If ``class_name`` is not a valid, non-reserved identifier.
  """
  if not _IDENTIFIER.match(class_name or "") or class_name in _RESERVED:
    raise ValueError(f"Invalid contract class name '{class_name}'")
  variant = ContractVariant(variant)

  w = CodeWriter()
  w.line(CONTRACT_IMPORT)
  w.blank()
  with w.block(f"class {class_name} extends Contract {{"):
    _BUILDERS[variant](w)
  w.blank()
  w.line(f"export const contracts = [{class_name}];")
  return w.getvalue()


def build_skeleton(
  variant: ContractVariant = ContractVariant.SINGLE_INVOCATION,
  class_name: str = "Chaincode",
) -> ChaincodeSkeleton:
  """
  Builds and parses a contract class.

  Args:
      variant: Lifecycle variant.
      class_name: Name of the class.

  Returns:
      ChaincodeSkeleton: Handles into the parsed TypeScript tree.

  Raises:
      ValueError: If ``class_name`` is invalid.
  """
  variant = ContractVariant(variant)
  tree = parse_source(skeleton_source(variant, class_name), dialect="typescript")

  class_node = tree.find_first("class_declaration")
  class_body = class_node.child_by_field_name("body")

  methods: Dict[str, NodeHandle] = {}
  fields: Dict[str, NodeHandle] = {}
  for member in class_body.named_children:
    name = member.child_by_field_name("name")
    if name is None:
      continue
    if member.type == "method_definition":
      methods[tree.node_text(name)] = tree.handle(member)
    elif member.type in ("public_field_definition", "field_definition"):
      fields[tree.node_text(name)] = tree.handle(member)

  logic = methods.pop(LOGIC_METHOD)
  return ChaincodeSkeleton(
    variant=variant,
    tree=tree,
    class_node=tree.handle(class_node),
    logic=logic,
    body=tree.handle(logic.node.child_by_field_name("body")),
    instances=fields.get("_instances"),
    entry_points=methods,
  )


def add_import(skeleton: ChaincodeSkeleton, statement: str) -> bool:
  """
  Adds an import statement after the existing imports of the skeleton.

  Args:
      skeleton: Target skeleton.
      statement: Import statement text, e.g. ``import fs from 'fs';``.

  Returns:
      bool: False when an identical import is already present.
  """
  tree = skeleton.tree
  text = statement.strip()
  if not text.endswith(";"):
    text += ";"

  imports = [node for node in tree.root.named_children if node.type == "import_statement"]
  if any(tree.node_text(node) == text for node in imports):
    return False

  if imports:
    tree.insert(imports[-1].end_byte, "\n" + text)
  else:
    tree.insert(0, text + "\n")
  return True
