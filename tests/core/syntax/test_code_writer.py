"""
Tests for the indented source writer.
"""

from chaincodify.core.syntax import CodeWriter


def test_block_indents_body():
  w = CodeWriter()
  with w.block("class A {"):
    w.line("x = 1;")
    with w.block("f() {"):
      w.line("return x;")

  assert w.getvalue() == "class A {\n  x = 1;\n  f() {\n    return x;\n  }\n}\n"


def test_custom_closer():
  w = CodeWriter()
  with w.block("const f = () => {", "};"):
    w.line("g();")

  assert w.getvalue() == "const f = () => {\n  g();\n};\n"


def test_blank_lines_do_not_stack_or_trail():
  w = CodeWriter()
  w.line("a();")
  w.blank()
  w.blank()
  w.line("b();")
  w.blank()

  assert w.getvalue() == "a();\n\nb();\n"


def test_lines_indents_each_line():
  w = CodeWriter(level=1)
  w.lines("a();\nb();")

  assert w.getvalue() == "  a();\n  b();\n"
