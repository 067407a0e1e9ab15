"""
Tests for the Alias Resolver.

Verifies:
1. Receiver aliases (`var node = this`) collapse to `this`, transitively.
2. The configuration parameter is renamed to `config` and its aliases collapse.
3. Renames respect shadowing and refuse to capture existing names.
4. Name matching stops at identifier boundaries.
"""

import pytest

from chaincodify.core.errors import IncompatibleFormatError
from chaincodify.core.rewriter import (
  collapse_aliases,
  ensure_environment_consistency,
  extract_contents,
  extract_export,
  find_references,
  rename_binding,
)
from chaincodify.core.syntax import parse_source


def _normalized(code):
  tree = parse_source(code)
  contents = extract_contents(extract_export(tree))
  ensure_environment_consistency(tree, contents.body, contents.definition)
  return tree, contents


def test_lower_case_receiver_alias(lower_case_js):
  tree, contents = _normalized(lower_case_js)
  body = contents.body.text

  assert "var node = this;" not in body
  assert "this.on('input', function(msg) {" in body
  assert "this.send(msg);" in body
  assert "node." not in body


def test_transitive_alias_chain():
  """
  Scenario: `self` re-states `node`, which re-states `this`.
  Expectation: Both declarations disappear and every use becomes `this`.
  """
  code = """\
module.exports = function(RED) {
  function N(config) {
    var node = this;
    var self = node;
    self.on('input', function(msg) {
      node.log(msg);
      self.send(msg);
    });
  }
};
"""
  tree, contents = _normalized(code)
  body = contents.body.text

  assert "var " not in body
  assert "this.on('input'" in body
  assert "this.log(msg);" in body
  assert "this.send(msg);" in body


def test_alias_restatement_is_dropped():
  code = "module.exports = function(RED) {\n  function N(config) {\n    var node = this;\n    node;\n    a(node);\n  }\n};\n"
  tree, contents = _normalized(code)

  assert contents.body.text == "{\n    a(this);\n  }"


def test_config_parameter_is_renamed_and_aliases_collapse():
  code = """\
module.exports = function(RED) {
  function N(cfg) {
    RED.nodes.createNode(this, cfg);
    var c = cfg;
    this.on('input', function(msg) {
      msg.x = c.x;
    });
  }
};
"""
  tree, contents = _normalized(code)
  definition = contents.definition.text

  assert definition.startswith("function N(config) {")
  assert "RED.nodes.createNode(this, config);" in definition
  assert "msg.x = config.x;" in definition
  assert "var c" not in definition
  assert "cfg" not in definition


def test_missing_parameter_is_added():
  tree, contents = _normalized("module.exports = function(RED) {\n  function N() {\n    a();\n  }\n};\n")

  assert contents.definition.text.startswith("function N(config) {")


def test_member_access_is_not_an_alias():
  """
  Scenario: An initializer ends with `.config` rather than the name itself.
  Expectation: The identifier boundary check leaves the declaration alone.
  """
  code = "module.exports = function(RED) {\n  function N(config) {\n    var opts = self.config;\n    a(opts);\n  }\n};\n"
  tree, contents = _normalized(code)

  assert "var opts = self.config;" in contents.body.text
  assert "a(opts);" in contents.body.text


def test_collapse_without_alias_is_noop():
  tree = parse_source("function f() {\n  a(this);\n}\n")
  before = tree.text

  assert collapse_aliases(tree, None, "this") == 0
  assert tree.text == before


def test_partial_declaration_keeps_other_declarators():
  tree = parse_source("function f() {\n  var node = this, count = 0;\n  node.x = count;\n}\n")

  collapse_aliases(tree, tree.find_first("statement_block"), "this")

  assert "var count = 0;" in tree.text
  assert "this.x = count;" in tree.text


def test_rename_respects_shadowing():
  tree = parse_source("function f(a) {\n  return a + (function(a) { return a; })(1);\n}\n")
  outer = tree.find_first("formal_parameters").named_children[0]

  count = rename_binding(tree, outer, "b")

  assert count == 2
  assert tree.text == "function f(b) {\n  return b + (function(a) { return a; })(1);\n}\n"


def test_rename_expands_shorthand_properties():
  tree = parse_source("function f(cfg) {\n  return { cfg };\n}\n")
  param = tree.find_first("formal_parameters").named_children[0]

  rename_binding(tree, param, "config")

  assert "return { cfg: config };" in tree.text


def test_find_references_matches_restatements():
  tree = parse_source("var a = x;\nvar b = x;\nvar c = y;\n")
  x = [n for n in tree.find_all("identifier") if tree.node_text(n) == "x"][0]

  found = find_references(tree, None, x)

  assert [tree.node_text(d) for d in found] == ["a = x", "b = x"]


def test_rename_refuses_to_capture_a_local():
  """
  Scenario: The definition parameter `n` is renamed while a local `config` exists.
  Expectation: IncompatibleFormatError; `n.x` must not start reading the local.
  """
  tree = parse_source("function N(n) {\n  var config = { a: 1 };\n  return n.x + config.a;\n}\n")
  param = tree.find_first("formal_parameters").named_children[0]

  with pytest.raises(IncompatibleFormatError, match="already in use"):
    rename_binding(tree, param, "config")
  assert tree.text.startswith("function N(n) {")


def test_rename_refuses_to_shadow_an_outer_name():
  tree = parse_source("function f(a) {\n  return a + b;\n}\n")
  param = tree.find_first("formal_parameters").named_children[0]

  with pytest.raises(IncompatibleFormatError):
    rename_binding(tree, param, "b")


def test_environment_rejects_colliding_config_name():
  code = """\
module.exports = function(RED) {
  function N(n) {
    var config = { a: 1 };
    this.on('input', function(msg) { this.send(n.x + config.a); });
  }
  RED.nodes.registerType('n', N);
};
"""
  with pytest.raises(IncompatibleFormatError):
    _normalized(code)


def test_missing_parameter_cannot_capture_existing_name():
  with pytest.raises(IncompatibleFormatError):
    _normalized("module.exports = function(RED) {\n  function N() {\n    var config = {};\n  }\n};\n")
