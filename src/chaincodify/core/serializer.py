"""
Serializer.

The only place contract trees are written to disk. `persist` formats the tree,
optionally relocates it and saves it, and can emit the JavaScript lowering
next to it.
"""

from pathlib import Path
from typing import List, Optional, Union

from rich.markup import escape

from chaincodify.core.lowering import lower_to_javascript
from chaincodify.core.syntax.formatting import format_tree
from chaincodify.core.syntax.tree import SourceTree
from chaincodify.utils.console import log_info


def write_text(path: Path, text: str) -> Path:
  """Writes ``text`` as UTF-8, creating parent directories."""
  path.parent.mkdir(parents=True, exist_ok=True)
  with open(path, "wt", encoding="utf-8", newline="\n") as f:
    f.write(text)
  return path


def render(tree: SourceTree, emit: bool = False) -> List[str]:
  """
  Formats ``tree`` and returns its text, plus the JavaScript lowering when
  ``emit`` is set.
  """
  format_tree(tree)
  texts = [tree.text]
  if emit:
    texts.append(lower_to_javascript(tree.text))
  return texts


def persist(
  tree: SourceTree,
  path: Optional[Union[str, Path]] = None,
  emit: bool = False,
  emit_path: Optional[Union[str, Path]] = None,
) -> List[Path]:
  """
  Saves a tree.

  Args:
      tree: Tree to save. It is formatted in place first.
      path: New location; becomes ``tree.path``. Defaults to the current one.
      emit: Also write the JavaScript lowering.
      emit_path: Location of the lowering. Defaults to ``path`` with a ``.js``
          extension.

  Returns:
      List[Path]: Written files, the source first.

  Raises:
      ValueError: If the tree has no path and none is given.
  """
  if path is not None:
    tree.path = Path(path)
  if tree.path is None:
    raise ValueError("Cannot persist a tree without a path")

  texts = render(tree, emit=emit)
  written = [write_text(tree.path, texts[0])]
  if emit:
    target = Path(emit_path) if emit_path is not None else tree.path.with_suffix(".js")
    if target == tree.path:
      raise ValueError(f"Lowering would overwrite {tree.path}")
    written.append(write_text(target, texts[1]))
  for item in written:
    log_info(f"Wrote [path]{escape(str(item))}[/path]")
  return written
