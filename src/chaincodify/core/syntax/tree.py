"""
Syntax Tree Builder.

Wraps tree-sitter parse trees of JavaScript and TypeScript sources in a mutable
`SourceTree`. tree-sitter trees are immutable, so every mutation is a text
splice (`Edit`) followed by a re-parse of the whole buffer.

Callers that need to keep a position across mutations hold a `NodeHandle`.
The tree shifts every live handle as edits land and detaches handles whose
span was removed or overwritten, which is how "node no longer attached" is
observed during traversals that mutate the tree.

Offsets are byte offsets into the UTF-8 encoded buffer, as in tree-sitter.
"""

import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import tree_sitter
import tree_sitter_javascript
import tree_sitter_typescript

from chaincodify.core.errors import ParseError

_LANGUAGES = {
  "javascript": tree_sitter.Language(tree_sitter_javascript.language()),
  "typescript": tree_sitter.Language(tree_sitter_typescript.language_typescript()),
}

# Statement-like kinds whose removal should take the whole line with them.
_LINE_KINDS = frozenset(
  {
    "expression_statement",
    "lexical_declaration",
    "variable_declaration",
    "import_statement",
    "export_statement",
    "return_statement",
    "if_statement",
    "function_declaration",
    "class_declaration",
    "interface_declaration",
    "type_alias_declaration",
    "method_definition",
    "public_field_definition",
    "field_definition",
    "pair",
    "comment",
  }
)


class DetachedNodeError(LookupError):
  """Raised when a `NodeHandle` no longer points into its tree."""


@dataclass(frozen=True)
class Edit:
  """
  A single text splice over the byte range ``[start, end)``.

  An insertion is an edit with ``start == end``.
  """

  start: int
  end: int
  text: str = ""


Target = Union[tree_sitter.Node, "NodeHandle"]


class NodeHandle:
  """
  Stable reference to a node of a `SourceTree`.

  The handle records the node kind and byte span. The owning tree updates the
  span after every edit; once the span is removed or partially overwritten the
  handle is detached and resolving it raises `DetachedNodeError`.
  """

  def __init__(self, tree: "SourceTree", start: int, end: int, kind: str) -> None:
    self.tree = tree
    self.start = start
    self.end = end
    self.kind = kind
    self._attached = True

  @property
  def attached(self) -> bool:
    """True while the handle still resolves to a node of its kind."""
    if not self._attached:
      return False
    if self.tree.node_at(self.start, self.end, self.kind) is None:
      self._attached = False
    return self._attached

  @property
  def node(self) -> tree_sitter.Node:
    """
    Resolves the live node.

    Raises:
        DetachedNodeError: If the node was removed or replaced.
    """
    if self._attached:
      found = self.tree.node_at(self.start, self.end, self.kind)
      if found is not None:
        return found
      self._attached = False
    raise DetachedNodeError(f"{self.kind} at {self.start}:{self.end} is no longer attached")

  @property
  def text(self) -> str:
    return self.tree.node_text(self.node)

  def detach(self) -> None:
    self._attached = False

  def _shift(self, edit: Edit, delta: int) -> None:
    if not self._attached:
      return
    if edit.start == edit.end:
      # Insertions at the start move the node, insertions at the end leave it alone.
      if edit.start <= self.start:
        self.start += delta
        self.end += delta
      elif edit.start < self.end:
        self.end += delta
      return
    if edit.end <= self.start:
      self.start += delta
      self.end += delta
    elif edit.start >= self.end:
      return
    elif self.start <= edit.start and edit.end <= self.end and (edit.start, edit.end) != (self.start, self.end):
      self.end += delta
    else:
      self._attached = False

  def __repr__(self) -> str:
    state = "attached" if self._attached else "detached"
    return f"<NodeHandle {self.kind} {self.start}:{self.end} {state}>"


def walk(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
  """Pre-order traversal of ``node`` and all its descendants."""
  stack = [node]
  while stack:
    current = stack.pop()
    yield current
    stack.extend(reversed(current.children))


def walk_post_order(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
  """Post-order traversal: every child is yielded before its parent."""
  stack: List[Tuple[tree_sitter.Node, bool]] = [(node, False)]
  while stack:
    current, expanded = stack.pop()
    if expanded:
      yield current
      continue
    stack.append((current, True))
    for child in reversed(current.children):
      stack.append((child, False))


def _first_error(node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
  for candidate in walk(node):
    if candidate.type == "ERROR" or candidate.is_missing:
      return candidate
  return None


class SourceTree:
  """
  Mutable syntax tree of one source unit.

  Attributes:
      dialect (str): ``"javascript"`` or ``"typescript"``.
      path (Optional[Path]): Location the tree is saved to by the serializer.
  """

  def __init__(self, text: str, dialect: str = "javascript", path: Optional[Path] = None) -> None:
    if dialect not in _LANGUAGES:
      raise ValueError(f"Unknown dialect '{dialect}'. Expected one of {sorted(_LANGUAGES)}")
    self.dialect = dialect
    self.path = Path(path) if path else None
    self._parser = tree_sitter.Parser(_LANGUAGES[dialect])
    self._handles: "weakref.WeakSet[NodeHandle]" = weakref.WeakSet()
    self._source = text.encode("utf-8")
    self._tree = self._parser.parse(self._source)

  @property
  def source(self) -> bytes:
    return self._source

  @property
  def text(self) -> str:
    return self._source.decode("utf-8")

  @property
  def root(self) -> tree_sitter.Node:
    return self._tree.root_node

  def node_text(self, node: Target) -> str:
    start, end = self.span(node)
    return self._source[start:end].decode("utf-8")

  def span(self, target: Target) -> Tuple[int, int]:
    if isinstance(target, NodeHandle):
      node = target.node
      return node.start_byte, node.end_byte
    return target.start_byte, target.end_byte

  def resolve(self, target: Target) -> tree_sitter.Node:
    return target.node if isinstance(target, NodeHandle) else target

  def handle(self, node: Target) -> NodeHandle:
    """Creates a handle tracking ``node`` through later edits."""
    if isinstance(node, NodeHandle):
      return node
    handle = NodeHandle(self, node.start_byte, node.end_byte, node.type)
    self._handles.add(handle)
    return handle

  def node_at(self, start: int, end: int, kind: Optional[str] = None) -> Optional[tree_sitter.Node]:
    """
    Finds the outermost node spanning exactly ``[start, end)``.

    Args:
        start: Start byte.
        end: End byte.
        kind: Optional node type the match must have.

    Returns:
        Optional[Node]: The node, or None when no node has that span and kind.
    """
    node = self.root
    while True:
      if node.start_byte == start and node.end_byte == end and (kind is None or node.type == kind):
        return node
      next_node = None
      for child in node.children:
        if child.start_byte <= start and end <= child.end_byte and child.end_byte > child.start_byte:
          next_node = child
          break
      if next_node is None:
        return None
      node = next_node

  def find_all(self, kinds: Union[str, Iterable[str]], within: Optional[Target] = None) -> List[tree_sitter.Node]:
    """Returns every node of the given kind(s) under ``within`` (default: root), in source order."""
    wanted = {kinds} if isinstance(kinds, str) else set(kinds)
    scope = self.resolve(within) if within is not None else self.root
    return [node for node in walk(scope) if node.type in wanted]

  def find_first(self, kinds: Union[str, Iterable[str]], within: Optional[Target] = None) -> Optional[tree_sitter.Node]:
    found = self.find_all(kinds, within)
    return found[0] if found else None

  def line_prefix(self, offset: int) -> str:
    """Text between the start of the line holding ``offset`` and ``offset``."""
    line_start = self._source.rfind(b"\n", 0, offset) + 1
    return self._source[line_start:offset].decode("utf-8")

  def line_indent(self, offset: int) -> str:
    prefix = self.line_prefix(offset)
    return prefix[: len(prefix) - len(prefix.lstrip())]

  def removal_range(self, node: Target) -> Tuple[int, int]:
    """
    Computes the byte range removed by `remove`.

    Statement-like nodes alone on their lines take the full lines (including
    the line break) with them; other nodes take trailing spaces on the same line.
    """
    start, end = self.span(node)
    kind = self.resolve(node).type
    line_start = self._source.rfind(b"\n", 0, start) + 1
    line_end = self._source.find(b"\n", end)
    if line_end == -1:
      line_end = len(self._source)
    prefix = self._source[line_start:start]
    suffix = self._source[end:line_end]
    if kind in _LINE_KINDS and not prefix.strip() and not suffix.strip():
      return line_start, min(line_end + 1, len(self._source))
    trailing = len(suffix) - len(suffix.lstrip(b" \t"))
    return start, end + trailing

  def apply_edits(self, edits: Sequence[Edit]) -> int:
    """
    Applies a batch of splices and re-parses the buffer once.

    Edits are ordered by position. An edit that overlaps an edit kept earlier in
    the batch targets a node the earlier edit already detached, so it is
    skipped instead of raising.

    Args:
        edits: Splices expressed in current buffer coordinates.

    Returns:
        int: Number of edits applied.
    """
    if not edits:
      return 0

    kept: List[Edit] = []
    frontier = -1
    for edit in sorted(edits, key=lambda e: (e.start, -e.end)):
      if edit.start < frontier:
        continue
      kept.append(edit)
      frontier = max(frontier, edit.end)

    source = self._source
    handles = list(self._handles)
    for edit in reversed(kept):
      payload = edit.text.encode("utf-8")
      source = source[: edit.start] + payload + source[edit.end :]
      delta = len(payload) - (edit.end - edit.start)
      for handle in handles:
        handle._shift(edit, delta)

    self._source = source
    self._tree = self._parser.parse(self._source)
    return len(kept)

  def replace(self, target: Target, text: str) -> bool:
    """Replaces the text of ``target``. Returns False when the target is detached."""
    try:
      start, end = self.span(target)
    except DetachedNodeError:
      return False
    return self.apply_edits([Edit(start, end, text)]) == 1

  def remove(self, target: Target) -> bool:
    try:
      start, end = self.removal_range(target)
    except DetachedNodeError:
      return False
    return self.apply_edits([Edit(start, end, "")]) == 1

  def insert(self, offset: int, text: str) -> None:
    self.apply_edits([Edit(offset, offset, text)])

  def set_text(self, text: str) -> None:
    """Replaces the whole buffer. All handles are detached."""
    for handle in list(self._handles):
      handle.detach()
    self._source = text.encode("utf-8")
    self._tree = self._parser.parse(self._source)

  def check(self) -> None:
    """
    Validates the current buffer.

    Raises:
        ParseError: If tree-sitter recovered from any syntax error.
    """
    if not self.root.has_error:
      return
    bad = _first_error(self.root) or self.root
    row, column = bad.start_point[0], bad.start_point[1]
    lines = self.node_text(bad).strip().splitlines()
    snippet = lines[0][:40] if lines else ""
    detail = f" near '{snippet}'" if snippet else ""
    where = f"{self.path}:" if self.path else "line "
    raise ParseError(
      f"Invalid {self.dialect} source at {where}{row + 1}:{column + 1}{detail}",
      line=row + 1,
      column=column + 1,
    )

  def __repr__(self) -> str:
    return f"<SourceTree {self.dialect} {self.path or '(memory)'} {len(self._source)} bytes>"


def parse_source(
  text: str,
  dialect: str = "javascript",
  format: bool = True,
  path: Optional[Path] = None,
) -> SourceTree:
  """
  Parses source text into a `SourceTree`.

  Args:
      text: Module source.
      dialect: ``"javascript"`` or ``"typescript"``.
      format: Normalize whitespace and guarantee a trailing newline.
      path: Optional origin path kept on the tree.

  Returns:
      SourceTree: The parsed tree.

  Raises:
      ParseError: If the text is not syntactically valid.
  """
  from chaincodify.core.syntax.formatting import format_tree

  tree = SourceTree(text, dialect=dialect, path=path)
  tree.check()
  if format:
    format_tree(tree)
  return tree


def load_source(path: Union[str, Path], dialect: str = "javascript", format: bool = True) -> SourceTree:
  """Reads and parses a source file, remembering its path."""
  path = Path(path)
  with open(path, "rt", encoding="utf-8") as f:
    text = f.read()
  try:
    return parse_source(text, dialect=dialect, format=format, path=path)
  except ParseError as e:
    e.module = path.name
    raise
