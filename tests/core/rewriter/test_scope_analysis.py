"""
Tests for the Scope Analyzer.

Verifies:
1. Lexical shadowing and `var` hoisting.
2. Receiver (`this`) bindings of functions, arrows and classes.
3. Origins of required and imported symbols.
"""

import pytest

from chaincodify.core.errors import BindingResolutionError
from chaincodify.core.rewriter import ScopeAnalyzer
from chaincodify.core.syntax import parse_source


def _identifiers(tree, name):
  return [node for node in tree.find_all("identifier") if tree.node_text(node) == name]


def test_block_shadowing():
  tree = parse_source("let x = 1;\n{\n  let x = 2;\n  use(x);\n}\nuse(x);\n")
  analyzer = ScopeAnalyzer(tree)
  outer_decl, inner_decl, inner_ref, outer_ref = _identifiers(tree, "x")

  assert analyzer.binding_of(inner_ref) is analyzer.binding_of(inner_decl)
  assert analyzer.binding_of(outer_ref) is analyzer.binding_of(outer_decl)
  assert analyzer.binding_of(inner_ref) is not analyzer.binding_of(outer_ref)


def test_var_is_hoisted_to_function():
  tree = parse_source("function f(a) {\n  if (a) {\n    var v = 1;\n  }\n  return v;\n}\n")
  analyzer = ScopeAnalyzer(tree)
  declaration, reference = _identifiers(tree, "v")

  binding = analyzer.binding_of(reference)
  assert binding is analyzer.binding_of(declaration)
  assert binding.kind == "var"


def test_arrow_functions_share_receiver():
  tree = parse_source("function f() {\n  const g = () => this;\n  function h() { return this; }\n  return this;\n}\n")
  analyzer = ScopeAnalyzer(tree)
  arrow_this, nested_this, outer_this = tree.find_all("this")

  assert analyzer.binding_of(arrow_this) is analyzer.binding_of(outer_this)
  assert analyzer.binding_of(nested_this) is not analyzer.binding_of(outer_this)


def test_globals_are_shared():
  tree = parse_source("a(console);\nb(console);\n")
  analyzer = ScopeAnalyzer(tree)
  first, second = _identifiers(tree, "console")

  binding = analyzer.binding_of(first)
  assert binding.kind == "global"
  assert binding is analyzer.binding_of(second)


def test_required_members_alias_each_other():
  """
  Scenario: The same module member is required under two local names.
  Expectation: Distinct bindings that alias through their common origin.
  """
  tree = parse_source("const { readFile } = require('fs');\nconst { readFile: rf } = require('fs');\n")
  analyzer = ScopeAnalyzer(tree)
  short = tree.find_first("shorthand_property_identifier_pattern")
  renamed = _identifiers(tree, "rf")[0]

  a, b = analyzer.binding_of(short), analyzer.binding_of(renamed)
  assert a is not b
  assert a.origin == b.origin == "module:fs#readFile"
  assert a.aliases(b)


def test_imports_record_origin():
  tree = parse_source("import fs, { join as j } from 'path';\nimport * as os from 'os';\n")
  analyzer = ScopeAnalyzer(tree)

  origins = {b.name: b.origin for b in analyzer.declared()}
  assert origins == {"fs": "module:path#default", "j": "module:path#join", "os": "module:os#*"}


def test_references_in_source_order():
  tree = parse_source("function f(p) {\n  g(p);\n  return p;\n}\n")
  analyzer = ScopeAnalyzer(tree)
  binding = analyzer.binding_of(_identifiers(tree, "p")[0])

  refs = analyzer.references(binding)
  assert [node.start_byte for node in refs] == sorted(node.start_byte for node in refs)
  assert len(refs) == 3


def test_unresolvable_node_raises():
  tree = parse_source("a.b;\n")
  analyzer = ScopeAnalyzer(tree)

  with pytest.raises(BindingResolutionError):
    analyzer.binding_of(tree.find_first("property_identifier"))


def test_analysis_goes_stale_after_edit():
  tree = parse_source("a();\n")
  analyzer = ScopeAnalyzer(tree)

  tree.insert(0, "b();\n")

  assert analyzer.stale
