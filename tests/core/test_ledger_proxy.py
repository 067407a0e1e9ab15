"""
Tests for replacing node bodies with the ledger proxy.
"""

from chaincodify.core.proxy import DEFAULT_ENDPOINT_ENV, connect_node_to_ledger, proxy_body
from chaincodify.core.rewriter import extract_contents, extract_export
from chaincodify.core.syntax import parse_source


def _connect(code, **kwargs):
  tree = parse_source(code)
  contents = extract_contents(extract_export(tree))
  connect_node_to_ledger(tree, contents, "node-red-contrib-sample_chain", "lower-case-chain", **kwargs)
  return tree


def test_proxy_replaces_logic(lower_case_js):
  tree = _connect(lower_case_js)
  text = tree.text

  parse_source(text).check()
  assert "msg.payload.toLowerCase()" not in text
  assert "RED.nodes.createNode(this, config);" in text
  assert "const PACKAGE_NAME = 'node-red-contrib-sample_chain';" in text
  assert "const NODE_NAME = 'lower-case-chain';" in text
  assert 'RED.nodes.registerType("lower-case",LowerCaseNode);' in text


def test_proxy_starts_chaincode_and_forwards_messages(lower_case_js):
  text = _connect(lower_case_js).text

  assert f"process.env.{DEFAULT_ENDPOINT_ENV}" in text
  assert "/chaincode/up/${INSTANCE_PATH}" in text
  assert "JSON.stringify({ config: config })" in text
  assert "/chaincode/transaction/${INSTANCE_PATH}" in text
  assert text.index("START_BLOCKCHAIN();") < text.index('this.on("input"')
  assert "this.send(await response.json());" in text


def test_proxy_uses_definition_parameter_name():
  code = "module.exports = function(RED) {\n  function N(settings) {\n    a();\n  }\n};\n"
  text = _connect(code).text

  assert "RED.nodes.createNode(this, settings);" in text
  assert "JSON.stringify({ config: settings })" in text


def test_proxy_adds_missing_parameter():
  code = "module.exports = function(RED) {\n  function N() {\n    a();\n  }\n};\n"
  text = _connect(code).text

  assert "function N(config) {" in text
  assert "RED.nodes.createNode(this, config);" in text


def test_proxy_body_is_indented_inside_definition(lower_case_js):
  lines = _connect(lower_case_js).text.split("\n")
  start = lines.index("    function LowerCaseNode(config) {")

  assert lines[start + 1] == "      RED.nodes.createNode(this, config);"


def test_custom_endpoint_variable():
  body = proxy_body("pkg", "n", endpoint_env="LEDGER_HOST")

  assert "`http://${process.env.LEDGER_HOST}`" in body
  assert body.count("this.error(e);") == 2
