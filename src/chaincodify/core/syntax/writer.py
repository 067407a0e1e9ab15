"""
Indented Source Writer.

Accumulates generated JavaScript/TypeScript lines with two-space indentation.
Used wherever the pipeline synthesizes code from nothing (the contract skeleton,
the ledger proxy, lowered module wrappers) instead of copying it from a tree.
"""

from contextlib import contextmanager
from typing import Iterable, Iterator, List

INDENT = "  "


class CodeWriter:
  """
  Line buffer with a current indentation level.

  Example:
      >>> w = CodeWriter()
      >>> with w.block("class A {", "}"):
      ...   w.line("x = 1;")
      >>> w.getvalue()
      'class A {\\n  x = 1;\\n}\\n'
  """

  def __init__(self, level: int = 0) -> None:
    self._lines: List[str] = []
    self.level = level

  @property
  def indent(self) -> str:
    return INDENT * self.level

  def line(self, text: str = "") -> "CodeWriter":
    """Appends one line at the current indentation. Empty text writes a blank line."""
    self._lines.append(self.indent + text if text else "")
    return self

  def blank(self) -> "CodeWriter":
    if self._lines and self._lines[-1] != "":
      self._lines.append("")
    return self

  def lines(self, text: str) -> "CodeWriter":
    """Appends a multi-line block, indenting each non-empty line."""
    for raw in text.split("\n"):
      self.line(raw.rstrip())
    return self

  def extend(self, items: Iterable[str]) -> "CodeWriter":
    for item in items:
      self.lines(item)
    return self

  @contextmanager
  def block(self, opener: str, closer: str = "}") -> Iterator["CodeWriter"]:
    """
    Writes ``opener``, indents everything written inside the context, then writes ``closer``.

    Args:
        opener: Opening line, e.g. ``"apply(ctx, msg, config) {"``.
        closer: Closing line, e.g. ``"}"`` or ``"});"``.
    """
    self.line(opener)
    self.level += 1
    try:
      yield self
    finally:
      self.level -= 1
    self.line(closer)

  def getvalue(self) -> str:
    while self._lines and self._lines[-1] == "":
      self._lines.pop()
    return "\n".join(self._lines) + "\n"
