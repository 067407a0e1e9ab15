"""
Ledger Proxy.

After conversion the node logic runs inside the contract. The Node-RED side of
the node keeps its registration and editor, but its body is replaced by a
proxy that:

1.  Deploys and initialises one contract instance for the node instance
    (``POST /chaincode/up/<package>/<node>/<id>`` with the node config).
2.  Forwards every message as a transaction
    (``POST /chaincode/transaction/<package>/<node>/<id>``) and sends the
    response on. Transactions are chained on a promise so messages are
    submitted in arrival order.
"""

from chaincodify.core.rewriter.extractors import ExportDescriptor
from chaincodify.core.syntax.formatting import indent_block
from chaincodify.core.syntax.tree import SourceTree
from chaincodify.core.syntax.writer import INDENT, CodeWriter
from chaincodify.core.tracer import get_tracer

DEFAULT_ENDPOINT_ENV = "STATUS_LEDGER_ENDPOINT"


def _write_guarded(w: CodeWriter, *statements: str) -> None:
  """Writes ``statements`` in a try block reporting failures through ``this.error``."""
  with w.block("try {", "} catch (e) {"):
    w.extend(statements)
  w.level += 1
  w.line("this.error(e);")
  w.level -= 1
  w.line("}")


def proxy_body(
  package_name: str,
  node_name: str,
  endpoint_env: str = DEFAULT_ENDPOINT_ENV,
  config_name: str = "config",
) -> str:
  """
  Renders the statements of the proxy node body.

  Args:
      package_name: npm package the chaincode is deployed under.
      node_name: Converted node type.
      endpoint_env: Environment variable holding the ledger middleware host.
      config_name: Name of the node definition parameter holding the config.

  Returns:
      str: Statements at indentation level zero.
  """
  w = CodeWriter()
  w.line(f"RED.nodes.createNode(this, {config_name});")
  w.blank()
  w.line(f"const PACKAGE_NAME = '{package_name}';")
  w.line(f"const NODE_NAME = '{node_name}';")
  w.line(f"const LEDGER_URL = `http://${{process.env.{endpoint_env}}}`;")
  w.line("const INSTANCE_ID = this.id;")
  w.line("const INSTANCE_PATH = `${PACKAGE_NAME}/${NODE_NAME}/${INSTANCE_ID}`;")
  w.blank()
  with w.block("const START_BLOCKCHAIN = async () => {", "};"):
    _write_guarded(
      w,
      'const ops = { method: "POST", headers: { "Content-Type": "application/json" }, body: JSON.stringify({ config: ' + config_name + ' }) };',
      "await fetch(`${LEDGER_URL}/chaincode/up/${INSTANCE_PATH}`, ops);",
    )
  w.blank()
  w.line("let promise_queue = START_BLOCKCHAIN();")
  w.blank()
  with w.block('this.on("input", (msg) => {', "});"):
    w.line('const ops = { method: "POST", headers: { "Content-Type": "application/json" }, body: JSON.stringify({ msg }) };')
    with w.block("promise_queue = promise_queue.then(async () => {", "});"):
      _write_guarded(
        w,
        "const response = await fetch(`${LEDGER_URL}/chaincode/transaction/${INSTANCE_PATH}`, ops);",
        "this.send(await response.json());",
      )
  return w.getvalue()


def connect_node_to_ledger(
  tree: SourceTree,
  export: ExportDescriptor,
  package_name: str,
  node_name: str,
  endpoint_env: str = DEFAULT_ENDPOINT_ENV,
) -> None:
  """
  Replaces the body of the node definition with the ledger proxy.

  The proxy forwards the first parameter of the definition as the node
  config. A definition without parameters gets a ``config`` parameter.

  Args:
      tree: Node module tree (mutated).
      export: Descriptor from `extract_contents` on ``tree``.
      package_name: npm package name of the chaincode.
      node_name: Converted node type.
      endpoint_env: Environment variable holding the ledger middleware host.
  """
  definition = export.definition.node
  params = definition.child_by_field_name("parameters")
  declared = [p for p in params.named_children if p.type != "comment"] if params is not None else []
  config_name = tree.node_text(declared[0]) if declared and declared[0].type == "identifier" else "config"

  body = export.body.node
  indent = tree.line_indent(definition.start_byte)
  statements = indent_block(proxy_body(package_name, node_name, endpoint_env, config_name).rstrip("\n"), indent + INDENT)
  before = tree.node_text(body)
  tree.replace(body, "{\n" + statements + "\n" + indent + "}")

  if params is not None and not declared:
    tree.replace(export.definition.node.child_by_field_name("parameters"), "(config)")

  get_tracer().log_mutation("statement_block", before, f"(ledger proxy for {node_name})")
