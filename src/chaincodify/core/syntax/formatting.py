"""
Whitespace Formatting.

Formatting is limited to layout that never changes meaning:

1.  Trailing whitespace is stripped from every line.
2.  Runs of blank lines collapse to a single blank line; leading blank lines are dropped.
3.  The text ends with exactly one line break.

Lines whose line break sits inside a template literal are left untouched, since
their whitespace is part of a string value.

The module also re-indents statements when they are copied between trees
(`relocated_text`), again leaving template literal content as is.
"""

from typing import List, Set

import tree_sitter

from chaincodify.core.syntax.tree import Edit, SourceTree, walk

_LITERAL_KINDS = frozenset({"template_string", "string"})


def literal_rows(node: tree_sitter.Node) -> Set[int]:
  """
  Rows whose terminating line break lies inside a multi-line literal.

  Args:
      node: Subtree to scan.

  Returns:
      Set[int]: Absolute (0-based) row numbers.
  """
  rows: Set[int] = set()
  for candidate in walk(node):
    if candidate.type in _LITERAL_KINDS and candidate.end_point[0] > candidate.start_point[0]:
      rows.update(range(candidate.start_point[0], candidate.end_point[0]))
  return rows


def formatting_edits(tree: SourceTree) -> List[Edit]:
  """Computes the splices `format_tree` applies."""
  source = tree.source
  protected = literal_rows(tree.root)
  edits: List[Edit] = []

  content_end = len(source.rstrip())
  if content_end == 0:
    return [Edit(0, len(source), "")] if source else []

  offset = 0
  previous_blank = True
  for row, line in enumerate(source.split(b"\n")):
    line_start = offset
    line_end = offset + len(line)
    offset = line_end + 1
    if line_start >= content_end:
      break

    inside_literal = row in protected or (row - 1) in protected
    if inside_literal:
      previous_blank = False
      continue

    stripped = line.rstrip()
    if not stripped:
      if previous_blank:
        edits.append(Edit(line_start, min(offset, len(source)), ""))
      elif len(line):
        edits.append(Edit(line_start, line_end, ""))
      previous_blank = True
      continue

    previous_blank = False
    if len(stripped) != len(line):
      edits.append(Edit(line_start + len(stripped), line_end, ""))

  if source[content_end:] != b"\n":
    edits.append(Edit(content_end, len(source), "\n"))
  return edits


def format_tree(tree: SourceTree) -> SourceTree:
  """
  Formats ``tree`` in place.

  Handles held on the tree stay valid, since formatting goes through `SourceTree.apply_edits`.
  """
  tree.apply_edits(formatting_edits(tree))
  return tree


def format_text(text: str, dialect: str = "javascript") -> str:
  """Formats a source string without validating it."""
  return format_tree(SourceTree(text, dialect=dialect)).text


def relocated_text(tree: SourceTree, node: tree_sitter.Node, indent: str = "") -> str:
  """
  Returns the text of ``node`` re-indented to start at ``indent``.

  The common indentation of the node's lines (its first line counting from the
  node's column) is replaced by ``indent``. Lines that begin inside a template
  literal keep their exact text.

  Args:
      tree: Tree owning the node.
      node: Node to copy.
      indent: Indentation for the copied text.

  Returns:
      str: Re-indented text without a trailing line break.
  """
  lines = tree.node_text(node).split("\n")
  first_row = node.start_point[0]
  protected = {row - first_row for row in literal_rows(node)}

  column = len(tree.line_prefix(node.start_byte))
  if tree.line_prefix(node.start_byte).strip():
    column = len(tree.line_indent(node.start_byte))

  common = column
  for index, line in enumerate(lines[1:], start=1):
    if (index - 1) in protected or not line.strip():
      continue
    common = min(common, len(line) - len(line.lstrip()))

  result = [indent + lines[0]]
  for index, line in enumerate(lines[1:], start=1):
    if (index - 1) in protected:
      result.append(line)
    elif not line.strip():
      result.append("")
    else:
      result.append(indent + line[common:])
  return "\n".join(result).rstrip()


def indent_block(text: str, indent: str) -> str:
  """Indents every non-empty line of an already normalized block."""
  return "\n".join(indent + line if line.strip() else "" for line in text.split("\n"))
