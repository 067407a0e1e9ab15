"""
TypeScript Lowering.

Turns the generated contract source into JavaScript Fabric can start without a
TypeScript toolchain. Lowering runs in two passes over tree-sitter trees:

1.  **Type stripping**: type annotations, type arguments and parameters,
    accessibility modifiers, optional markers, ``as``/``satisfies`` casts,
    non-null assertions, type-only imports and type declarations are removed.
    The pass repeats until nothing is left, since unwrapping a cast can expose
    annotations nested inside it.
2.  **Module conversion** (``module="commonjs"``): ES ``import``/``export``
    statements become ``require`` calls and ``module.exports`` assignments.
"""

from typing import List, Optional

import tree_sitter

from chaincodify.core.syntax.formatting import format_text
from chaincodify.core.syntax.tree import Edit, SourceTree, walk

MODULE_FORMATS = ("commonjs", "esm")

_REMOVED_KINDS = frozenset(
  {
    "type_annotation",
    "type_arguments",
    "type_parameters",
    "interface_declaration",
    "type_alias_declaration",
  }
)
_CAST_KINDS = frozenset({"as_expression", "satisfies_expression"})
_MAX_PASSES = 32


def _is_type_only_specifier(node: tree_sitter.Node) -> bool:
  return node.type == "import_specifier" and bool(node.children) and node.children[0].type in ("type", "typeof")


def _is_type_only_import(node: tree_sitter.Node) -> bool:
  return node.type == "import_statement" and any(child.type == "type" for child in node.children)


def _named_imports_edit(tree: SourceTree, named: tree_sitter.Node) -> Optional[Edit]:
  specifiers = [child for child in named.named_children if child.type == "import_specifier"]
  kept = [tree.node_text(child) for child in specifiers if not _is_type_only_specifier(child)]
  if len(kept) == len(specifiers):
    return None
  statement = named.parent.parent if named.parent is not None else None
  if not kept and statement is not None and len(named.parent.named_children) == 1:
    start, end = tree.removal_range(statement)
    return Edit(start, end, "")
  return Edit(named.start_byte, named.end_byte, "{ " + ", ".join(kept) + " }")


def _strip_edits(tree: SourceTree) -> List[Edit]:
  edits: List[Edit] = []
  for node in walk(tree.root):
    if node.type in _REMOVED_KINDS:
      if node.type.endswith("_declaration"):
        start, end = tree.removal_range(node)
        edits.append(Edit(start, end, ""))
      else:
        edits.append(Edit(node.start_byte, node.end_byte, ""))
    elif node.type == "accessibility_modifier":
      start, end = tree.removal_range(node)
      edits.append(Edit(start, end, ""))
    elif node.type in _CAST_KINDS and node.named_children:
      edits.append(Edit(node.start_byte, node.end_byte, tree.node_text(node.named_children[0])))
    elif node.type == "non_null_expression" and node.children and node.children[-1].type == "!":
      bang = node.children[-1]
      edits.append(Edit(bang.start_byte, bang.end_byte, ""))
    elif node.type == "optional_parameter":
      for child in node.children:
        if child.type == "?":
          edits.append(Edit(child.start_byte, child.end_byte, ""))
    elif _is_type_only_import(node):
      start, end = tree.removal_range(node)
      edits.append(Edit(start, end, ""))
    elif node.type == "named_imports":
      edit = _named_imports_edit(tree, node)
      if edit is not None:
        edits.append(edit)
  return edits


def strip_types(text: str) -> str:
  """
  Removes TypeScript-only syntax from ``text``.

  Args:
      text: TypeScript source.

  Returns:
      str: Source accepted by a JavaScript parser.
  """
  tree = SourceTree(text, dialect="typescript")
  for _ in range(_MAX_PASSES):
    if not tree.apply_edits(_strip_edits(tree)):
      break
  return tree.text


def _import_lines(tree: SourceTree, statement: tree_sitter.Node) -> List[str]:
  source = statement.child_by_field_name("source")
  if source is None:
    return []
  module = tree.node_text(source)
  clause = next((child for child in statement.named_children if child.type == "import_clause"), None)
  if clause is None:
    return [f"require({module});"]

  lines: List[str] = []
  default = None
  for part in clause.named_children:
    if part.type == "identifier":
      default = tree.node_text(part)
      lines.append(f"const {default} = require({module});")
    elif part.type == "namespace_import":
      name = part.named_children[-1]
      lines.append(f"const {tree.node_text(name)} = require({module});")
    elif part.type == "named_imports":
      pairs = []
      for spec in part.named_children:
        if spec.type != "import_specifier":
          continue
        name = spec.child_by_field_name("name")
        alias = spec.child_by_field_name("alias")
        imported = tree.node_text(name)
        pairs.append(f"{imported}: {tree.node_text(alias)}" if alias is not None else imported)
      if pairs:
        origin = default if default is not None else f"require({module})"
        lines.append("const { " + ", ".join(pairs) + " } = " + origin + ";")
  return lines


def _declared_names(tree: SourceTree, declaration: tree_sitter.Node) -> List[str]:
  if declaration.type in ("lexical_declaration", "variable_declaration"):
    names = []
    for declarator in declaration.named_children:
      name = declarator.child_by_field_name("name") if declarator.type == "variable_declarator" else None
      if name is not None and name.type == "identifier":
        names.append(tree.node_text(name))
    return names
  name = declaration.child_by_field_name("name")
  return [tree.node_text(name)] if name is not None else []


def _export_edits(tree: SourceTree, statement: tree_sitter.Node) -> List[Edit]:
  declaration = statement.child_by_field_name("declaration")
  value = statement.child_by_field_name("value")
  is_default = any(child.type == "default" for child in statement.children)

  if declaration is not None:
    names = _declared_names(tree, declaration)
    keyword = Edit(statement.start_byte, declaration.start_byte, "")
    if is_default and names:
      exports = [f"module.exports = {names[0]};"]
    else:
      exports = [f"module.exports.{name} = {name};" for name in names]
    return [keyword, Edit(statement.end_byte, statement.end_byte, "\n" + "\n".join(exports))]

  if is_default and value is not None:
    return [Edit(statement.start_byte, statement.end_byte, f"module.exports = {tree.node_text(value)};")]

  clause = next((child for child in statement.named_children if child.type == "export_clause"), None)
  if clause is None:
    return []
  lines = []
  for spec in clause.named_children:
    if spec.type != "export_specifier":
      continue
    name = tree.node_text(spec.child_by_field_name("name"))
    alias = spec.child_by_field_name("alias")
    exported = tree.node_text(alias) if alias is not None else name
    lines.append(f"module.exports.{exported} = {name};")
  return [Edit(statement.start_byte, statement.end_byte, "\n".join(lines))]


def to_commonjs(text: str) -> str:
  """Rewrites the top-level ES module statements of ``text`` into CommonJS."""
  tree = SourceTree(text, dialect="javascript")
  edits: List[Edit] = []
  for statement in tree.root.named_children:
    if statement.type == "import_statement":
      lines = _import_lines(tree, statement)
      edits.append(Edit(statement.start_byte, statement.end_byte, "\n".join(lines)))
    elif statement.type == "export_statement":
      edits.extend(_export_edits(tree, statement))
  tree.apply_edits(edits)
  return tree.text


def lower_to_javascript(text: str, module: str = "commonjs") -> str:
  """
  Lowers TypeScript contract source to JavaScript.

  Args:
      text: TypeScript source.
      module: ``"commonjs"`` to convert ES modules to ``require`` and
          ``module.exports``, ``"esm"`` to keep them.

  Returns:
      str: Formatted JavaScript source.

  Raises:
      ValueError: If ``module`` is not a known module format.
  """
  if module not in MODULE_FORMATS:
    raise ValueError(f"Unknown module format '{module}'. Expected one of {list(MODULE_FORMATS)}")
  lowered = strip_types(text)
  if module == "commonjs":
    lowered = "'use strict';\n\n" + to_commonjs(lowered)
  return format_text(lowered, dialect="javascript")
