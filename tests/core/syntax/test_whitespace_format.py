"""
Tests for Whitespace Formatting and Statement Relocation.
"""

from chaincodify.core.syntax import format_text, parse_source, relocated_text
from chaincodify.core.syntax.formatting import indent_block


def test_trailing_whitespace_and_blank_runs():
  text = "\n\na();   \n\n\n\nb();\t\n"

  assert format_text(text) == "a();\n\nb();\n"


def test_adds_single_final_newline():
  assert format_text("a();") == "a();\n"
  assert format_text("a();\n\n\n") == "a();\n"


def test_template_literal_content_is_untouched():
  """
  Scenario: A template literal spans lines with trailing spaces and blank lines.
  Expectation: Whitespace inside the literal is part of the value and survives.
  """
  text = "const t = `line   \n\n\n  end`;   \n"

  assert format_text(text) == "const t = `line   \n\n\n  end`;\n"


def test_formatting_is_idempotent(lower_case_js):
  once = format_text(lower_case_js)

  assert format_text(once) == once


def test_relocated_text_reindents():
  tree = parse_source("function f() {\n        if (x) {\n            y();\n        }\n}\n")
  statement = tree.find_first("if_statement")

  assert relocated_text(tree, statement, "  ") == "  if (x) {\n      y();\n  }"


def test_relocated_text_keeps_literal_lines():
  tree = parse_source("function f() {\n    g(`a\n    b`);\n}\n")
  statement = tree.find_first("expression_statement")

  assert relocated_text(tree, statement, "") == "g(`a\n    b`);"


def test_indent_block_skips_blank_lines():
  assert indent_block("a();\n\nb();", "  ") == "  a();\n\n  b();"
