"""
Tests for merging extracted node logic into the contract skeleton.

Verifies:
1. Ordering: ambient statements, cleanup registrations, input statements.
2. Handler parameters are renamed to the names `_internalLogic` provides.
3. Unsupported or missing handlers are rejected.
"""

import pytest

from chaincodify.core.errors import IncompatibleFormatError, MissingHandlerError
from chaincodify.core.rewriter import add_logic_to_skeleton, extract_contents, extract_export, extract_handlers
from chaincodify.core.rewriter.merge import CLEANUP_OPEN
from chaincodify.core.skeleton import build_skeleton
from chaincodify.core.syntax import parse_source
from chaincodify.enums import ContractVariant


def _merge(code, variant=ContractVariant.MULTI_INSTANCE):
  tree = parse_source(code)
  contents = extract_contents(extract_export(tree))
  skeleton = build_skeleton(variant)
  count = add_logic_to_skeleton(skeleton, extract_handlers(tree, contents.body))
  return skeleton, count


FULL_NODE = """\
module.exports = function(RED) {
  function N(config) {
    const prefix = config.prefix;
    this.on('input', function(m) {
      m.payload = prefix + m.payload;
      return m;
    });
    this.on('close', function(removed, done) {
      cleanup();
      done();
    });
  }
};
"""


def test_merge_order_and_parameters():
  skeleton, count = _merge(FULL_NODE)
  body = skeleton.body.text

  assert count == 4
  ambient = body.index("const prefix = config.prefix;")
  cleanup = body.index(CLEANUP_OPEN)
  logic = body.index("msg.payload = prefix + msg.payload;")
  assert ambient < cleanup < logic
  assert "return msg;" in body
  assert "m.payload" not in body


def test_merged_body_is_indented_and_valid():
  skeleton, _ = _merge(FULL_NODE)

  skeleton.tree.check()
  lines = skeleton.body.text.split("\n")
  assert lines[1] == "    const prefix = config.prefix;"
  assert "      cleanup();" in lines
  assert lines[-1] == "  }"


def test_single_parameter_close_handler_gets_done():
  code = """\
module.exports = function(RED) {
  function N(config) {
    this.on('input', function(msg) { a(msg); });
    this.on('close', function(finished) { finished(); });
  }
};
"""
  skeleton, _ = _merge(code)

  assert "done();" in skeleton.body.text
  assert "finished" not in skeleton.body.text


def test_multiple_input_handlers_concatenate():
  code = """\
module.exports = function(RED) {
  function N(config) {
    this.on('input', function(msg) { first(msg); });
    this.on('input', (message) => { second(message); });
  }
};
"""
  skeleton, _ = _merge(code, ContractVariant.SINGLE_INVOCATION)
  body = skeleton.body.text

  assert body.index("first(msg);") < body.index("second(msg);")


def test_missing_input_handler_is_rejected():
  code = "module.exports = function(RED) {\n  function N(config) {\n    this.on('close', function() {});\n  }\n};\n"

  with pytest.raises(MissingHandlerError):
    _merge(code)


def test_unknown_event_is_rejected():
  code = """\
module.exports = function(RED) {
  function N(config) {
    this.on('input', function(msg) {});
    this.on('error', function(e) {});
  }
};
"""
  with pytest.raises(IncompatibleFormatError, match="error"):
    _merge(code)


def test_handler_parameter_rename_cannot_capture_a_local():
  """
  Scenario: The input handler declares its own `msg` next to parameter `m`.
  Expectation: Renaming `m` to `msg` is refused instead of merging wrong code.
  """
  code = """\
module.exports = function(RED) {
  function N(config) {
    this.on('input', function(m) {
      var msg = { payload: m.payload };
      return msg;
    });
  }
};
"""
  with pytest.raises(IncompatibleFormatError, match="msg"):
    _merge(code)
