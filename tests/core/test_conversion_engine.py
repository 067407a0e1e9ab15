"""
Tests for the Conversion Engine.

Verifies:
1. The classic lower-case node converts end to end (contract, lowering,
   proxy module and editor document).
2. Failures are classified by error type and tagged with the node.
3. Conversions are deterministic.
4. Configuration switches (variant, proxy, lowering, rewrites) take effect.
"""

import pytest

import chaincodify
from chaincodify import ConversionEngine, RuntimeConfig
from chaincodify.core.syntax import parse_source
from chaincodify.core.tracer import TraceEventType
from chaincodify.enums import ContractVariant
from chaincodify.utils.console import captured_output


@pytest.fixture
def engine():
  return ConversionEngine(config=RuntimeConfig(suffix="chain"))


def test_lower_case_contract(engine, lower_case_js, lower_case_html):
  result = engine.run(lower_case_js, markup=lower_case_html, package_name="sample_chain")

  assert result.success, result.errors
  assert result.node == "lower-case"
  assert "  private _internalLogic(msg, config) {\n    msg.payload = msg.payload.toLowerCase();\n    return msg;\n  }" in result.code
  assert "RED." not in result.code
  assert "this.on(" not in result.code
  parse_source(result.code, dialect="typescript").check()


def test_lower_case_identity(engine, lower_case_js, lower_case_html):
  result = engine.run(lower_case_js, markup=lower_case_html)

  assert result.identity.original_name == "lower-case"
  assert result.identity.new_name == "lower-case-chain"
  assert result.identity.category == "chain"
  assert 'RED.nodes.registerType("lower-case-chain",LowerCaseNode);' in result.node_code
  assert "registerType('lower-case-chain'" in result.markup
  assert 'data-help-name="lower-case-chain"' in result.markup


def test_lowering_is_included(engine, lower_case_js):
  result = engine.run(lower_case_js)

  assert result.javascript.startswith("'use strict';")
  assert "msg.payload = msg.payload.toLowerCase();" in result.javascript
  parse_source(result.javascript).check()


def test_node_module_becomes_proxy(engine, lower_case_js):
  result = engine.run(lower_case_js, package_name="sample_chain")

  assert "const PACKAGE_NAME = 'sample_chain';" in result.node_code
  assert "const NODE_NAME = 'lower-case-chain';" in result.node_code
  assert "toLowerCase" not in result.node_code


def test_proxy_can_be_disabled(lower_case_js):
  engine = ConversionEngine(config=RuntimeConfig(suffix="chain", proxy_nodes=False, emit_javascript=False))

  result = engine.run(lower_case_js)

  assert result.javascript is None
  assert "msg.payload = msg.payload.toLowerCase();" in result.node_code
  assert 'registerType("lower-case-chain"' in result.node_code


def test_single_invocation_variant(lower_case_js):
  engine = ConversionEngine(config=RuntimeConfig(variant=ContractVariant.SINGLE_INVOCATION, class_name="LowerCase"))

  result = engine.run(lower_case_js)

  assert "class LowerCase extends Contract {" in result.code
  assert "public async apply(ctx: Context, msg: string, config: string) {" in result.code
  assert "initInstance" not in result.code


def test_requires_become_imports(engine):
  code = """\
const _ = require('lodash');
module.exports = function(RED) {
  function Pad(config) {
    RED.nodes.createNode(this, config);
    this.on('input', function(msg) {
      msg.payload = _.padStart(msg.payload, config.width);
      this.send(msg);
    });
  }
  RED.nodes.registerType('pad', Pad);
};
"""
  result = engine.run(code)

  assert result.success, result.errors
  assert "import _ from 'lodash';" in result.code
  assert "msg.payload = _.padStart(msg.payload, config.width);" in result.code


def test_configured_rewrites_apply(lower_case_js):
  code = lower_case_js.replace("node.send(msg);", "node.status({});\n            node.send(msg);")
  engine = ConversionEngine(config=RuntimeConfig(call_rewrites={"this.status": "console.log({arg});"}))

  result = engine.run(code)

  assert "console.log({});" in result.code


def test_conversion_is_deterministic(engine, lower_case_js, lower_case_html):
  first = engine.run(lower_case_js, markup=lower_case_html, package_name="p")
  second = engine.run(lower_case_js, markup=lower_case_html, package_name="p")

  assert (first.code, first.javascript, first.node_code, first.markup) == (
    second.code,
    second.javascript,
    second.node_code,
    second.markup,
  )


@pytest.mark.parametrize(
  "code, error_type",
  [
    ("module.exports = function(RED) {", "ParseError"),
    ("RED.nodes.registerType('a', A);\n", "IncompatibleFormatError"),
    ("module.exports = function(RED) {\n  function A(config) {}\n};\n", "RegistrationNotFoundError"),
    (
      "module.exports = function(RED) {\n  function A(config) {}\n  RED.nodes.registerType('a', A);\n};\n",
      "MissingHandlerError",
    ),
    (
      "module.exports = function(RED) {\n  function A(n) {\n    var config = {};\n"
      "    this.on('input', function(msg) { this.send(n); });\n  }\n  RED.nodes.registerType('a', A);\n};\n",
      "IncompatibleFormatError",
    ),
  ],
)
def test_failures_are_classified(engine, code, error_type):
  result = engine.run(code)

  assert not result.success
  assert result.error_type == error_type
  assert result.has_errors


def test_errors_name_the_node(engine):
  code = "module.exports = function(RED) {\n  function A(config) {}\n  RED.nodes.registerType('a', A);\n};\n"

  result = engine.run(code)

  assert result.errors == ["[a] The node registers no 'input' handler"]


def test_errors_name_the_file_before_identity_is_known(engine):
  result = engine.run("module.exports = function(RED) {", path="nodes/broken.js")

  assert result.errors[0].startswith("[broken.js]")


def test_trace_phases_are_balanced(engine, lower_case_js):
  events = engine.run(lower_case_js).trace_events

  starts = [e for e in events if e["type"] == TraceEventType.PHASE_START.value]
  ends = [e for e in events if e["type"] == TraceEventType.PHASE_END.value]
  assert starts[0]["description"] == "Conversion Pipeline"
  assert len(starts) == len(ends)
  assert any(e["type"] == TraceEventType.RENAME.value for e in events)


def test_failed_trace_is_closed(engine):
  events = engine.run("module.exports = 1;\n").trace_events

  starts = [e for e in events if e["type"] == TraceEventType.PHASE_START.value]
  ends = [e for e in events if e["type"] == TraceEventType.PHASE_END.value]
  assert len(starts) == len(ends)
  assert any(e["type"] == TraceEventType.WARNING.value for e in events)


def test_convert_helper(lower_case_js):
  code = chaincodify.convert(lower_case_js)

  assert "class Chaincode extends Contract {" in code
  with pytest.raises(ValueError, match="Conversion failed"):
    chaincodify.convert("module.exports = 1;\n")


def test_log_keeps_bracketed_node_names(engine, lower_case_js):
  """
  Scenario: The node type looks like console markup.
  Expectation: The log shows it verbatim instead of treating it as a style tag.
  """
  code = lower_case_js.replace('"lower-case"', '"[lower-case]"')

  with captured_output(width=200) as buffer:
    result = engine.run(code)

  assert result.success, result.errors
  assert "[lower-case] (LowerCaseNode)" in buffer.getvalue()
