"""
Script Locator.

Finds ``<script>`` elements of a markup document using standard library
`html.parser` and records where their attribute values and contents sit in the
raw text, so callers can rewrite them in place without re-serializing the rest
of the document.

Offsets are character offsets into the markup string.
"""

import html
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import List, Optional, Tuple

# Attribute of a raw start tag: name, then an optional quoted or bare value.
_ATTRIBUTE = re.compile(r"""([^\s"'>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+)))?""")


@dataclass
class ScriptAttribute:
  """
  One attribute of a script start tag.

  Attributes:
      name: Lowercased attribute name.
      value: Unescaped value, or None for a bare attribute.
      start: Offset of the first character of the raw value (inside quotes).
      end: Offset after the last character of the raw value.
  """

  name: str
  value: Optional[str]
  start: int
  end: int


@dataclass
class ScriptElement:
  """A ``<script>`` element and the span of its text content."""

  attributes: List[ScriptAttribute] = field(default_factory=list)
  content_start: int = 0
  content_end: int = 0
  content: str = ""

  def attribute(self, name: str) -> Optional[str]:
    for attr in self.attributes:
      if attr.name == name:
        return attr.value
    return None


def _start_tag_attributes(raw: str, offset: int) -> List[ScriptAttribute]:
  """Parses the attributes of a raw start tag beginning at ``offset``."""
  head = re.match(r"<\s*[^\s/>]+", raw)
  position = head.end() if head else 0
  body_end = len(raw) - 1 if raw.endswith(">") else len(raw)
  attributes = []
  for match in _ATTRIBUTE.finditer(raw, position, body_end):
    name = match.group(1).lower()
    group = next((g for g in (2, 3, 4) if match.group(g) is not None), None)
    if group is None:
      attributes.append(ScriptAttribute(name, None, offset + match.end(), offset + match.end()))
      continue
    attributes.append(
      ScriptAttribute(
        name,
        html.unescape(match.group(group)),
        offset + match.start(group),
        offset + match.end(group),
      )
    )
  return attributes


class ScriptScanner(HTMLParser):
  """
  Collects script elements while the document streams through the parser.

  `HTMLParser.getpos` reports the position of the tag being handled, which is
  converted to a character offset through the line table of the document.
  """

  def __init__(self, markup: str) -> None:
    super().__init__(convert_charrefs=True)
    self.markup = markup
    self.scripts: List[ScriptElement] = []
    self._open: Optional[ScriptElement] = None
    self._line_starts = [0]
    for index, char in enumerate(markup):
      if char == "\n":
        self._line_starts.append(index + 1)

  def _offset(self) -> int:
    line, column = self.getpos()
    return self._line_starts[line - 1] + column

  def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
    if tag != "script":
      return
    raw = self.get_starttag_text() or ""
    start = self._offset()
    self._open = ScriptElement(attributes=_start_tag_attributes(raw, start), content_start=start + len(raw))

  def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
    if tag != "script":
      return
    raw = self.get_starttag_text() or ""
    start = self._offset()
    end = start + len(raw)
    self.scripts.append(ScriptElement(_start_tag_attributes(raw, start), end, end, ""))

  def handle_endtag(self, tag: str) -> None:
    if tag != "script" or self._open is None:
      return
    script = self._open
    script.content_end = self._offset()
    script.content = self.markup[script.content_start : script.content_end]
    self.scripts.append(script)
    self._open = None


def find_scripts(markup: str) -> List[ScriptElement]:
  """
  Lists the script elements of a document in source order.

  Args:
      markup: The document text.

  Returns:
      List[ScriptElement]: Scripts with attribute and content offsets.
  """
  scanner = ScriptScanner(markup)
  scanner.feed(markup)
  scanner.close()
  return scanner.scripts


def splice(text: str, edits: List[Tuple[int, int, str]]) -> str:
  """Applies non-overlapping ``(start, end, replacement)`` splices back to front."""
  for start, end, replacement in sorted(edits, key=lambda e: e[0], reverse=True):
    text = text[:start] + replacement + text[end:]
  return text
