"""
Registration Rewriter.

Gives a converted node its new identity wherever Node-RED reads it:

1.  The ``RED.nodes.registerType(...)`` call of the node's ``.js`` module.
2.  The companion ``.html`` document, whose scripts register the editor side
    of the node (name, category, label) and key the template/help scripts by
    the node name.

Every rewrite is a splice over the original text, so content that is not part
of the identity stays byte-identical.
"""

from typing import List, Optional, Tuple

import tree_sitter

from chaincodify.core.errors import RegistrationNotFoundError
from chaincodify.core.html.scripts import find_scripts, splice
from chaincodify.core.rewriter.extractors import CALLABLE_KINDS, call_arguments
from chaincodify.core.syntax.tree import Edit, NodeHandle, SourceTree, parse_source, walk
from chaincodify.core.tracer import get_tracer

REGISTER_CALL = "RED.nodes.registerType"
CATEGORY_KEY = "category"
LABEL_KEY = "label"


def _unquote(text: str) -> str:
  return text.replace('"', "").replace("'", "").replace("`", "")


def _quoted(value: str, quote: str = "'") -> str:
  return f"{quote}{_unquote(value)}{quote}"


def _quote_of(tree: SourceTree, node: Optional[tree_sitter.Node]) -> str:
  if node is not None and node.type == "string":
    return tree.node_text(node)[0]
  return "'"


def find_registration_call(tree: SourceTree) -> tree_sitter.Node:
  """
  Returns the last ``RED.nodes.registerType`` call of the tree.

  Raises:
      RegistrationNotFoundError: If the tree holds no such call.
  """
  found = None
  for call in tree.find_all("call_expression"):
    if "".join(tree.node_text(call).split()).startswith(REGISTER_CALL):
      found = call
  if found is None:
    raise RegistrationNotFoundError(f"{REGISTER_CALL} not found")
  return found


def update_registration_identity(tree: SourceTree, new_identifier: str) -> NodeHandle:
  """
  Renames the node in its registration call.

  The first argument becomes ``new_identifier``, quoted with the quote
  character of the existing argument.

  Args:
      tree: Module or script tree (mutated).
      new_identifier: New node type, quoted or not.

  Returns:
      NodeHandle: Handle to the rewritten call.

  Raises:
      RegistrationNotFoundError: If there is no registration call.
  """
  call = tree.handle(find_registration_call(tree))
  args = call_arguments(call.node)
  if not args:
    raise RegistrationNotFoundError(f"{REGISTER_CALL} has no node type argument")
  name = args[0]
  text = _quoted(new_identifier, _quote_of(tree, name))
  if tree.node_text(name) != text:
    get_tracer().log_rename(tree.node_text(name), text)
    tree.replace(name, text)
  return call


def _options(call: tree_sitter.Node) -> Optional[tree_sitter.Node]:
  args = call_arguments(call)
  if len(args) < 2 or args[1].type != "object":
    return None
  return args[1]


def _property(tree: SourceTree, options: tree_sitter.Node, key: str) -> Optional[tree_sitter.Node]:
  """Finds the ``key`` member (pair, method or shorthand) of an object literal."""
  for member in options.named_children:
    if member.type == "pair":
      name = member.child_by_field_name("key")
    elif member.type == "method_definition":
      name = member.child_by_field_name("name")
    elif member.type == "shorthand_property_identifier":
      name = member
    else:
      continue
    if name is not None and _unquote(tree.node_text(name)) == key:
      return member
  return None


def _insert_property(tree: SourceTree, options: tree_sitter.Node, entry: str) -> Edit:
  """Builds the edit appending ``entry`` as the last member of ``options``."""
  members = [m for m in options.named_children if m.type != "comment"]
  if not members:
    return Edit(options.start_byte, options.end_byte, "{ " + entry + " }")

  last = members[-1]
  tail = tree.source[last.end_byte : options.end_byte - 1].decode("utf-8")
  comma = tail.find(",")
  multiline = options.start_point[0] != last.start_point[0]
  if multiline:
    indent = tree.line_indent(last.start_byte)
    if comma >= 0:
      return Edit(last.end_byte + comma + 1, last.end_byte + comma + 1, f"\n{indent}{entry},")
    return Edit(last.end_byte, last.end_byte, f",\n{indent}{entry}")
  if comma >= 0:
    return Edit(last.end_byte + comma + 1, last.end_byte + comma + 1, f" {entry},")
  return Edit(last.end_byte, last.end_byte, f", {entry}")


def _set_property(tree: SourceTree, call: NodeHandle, key: str, value: str) -> None:
  options = _options(call.node)
  if options is None:
    return
  member = _property(tree, options, key)
  if member is None:
    tree.apply_edits([_insert_property(tree, options, f"{key}: {value}")])
  elif member.type == "pair":
    current = member.child_by_field_name("value")
    if current is not None and tree.node_text(current) != value:
      tree.replace(current, value)
  else:
    tree.replace(member, f"{key}: {value}")


def rewrite_registration_call(tree: SourceTree, new_identifier: str, category: str) -> NodeHandle:
  """
  Renames the node and moves it to ``category``.

  The ``category`` property of the options object is rewritten, or inserted
  when missing. No other text changes.

  Args:
      tree: Script tree (mutated).
      new_identifier: New node type.
      category: Palette category.

  Returns:
      NodeHandle: Handle to the registration call.
  """
  call = update_registration_identity(tree, new_identifier)
  quote = _quote_of(tree, call_arguments(call.node)[0])
  _set_property(tree, call, CATEGORY_KEY, _quoted(category, quote))
  return call


def rewrite_label(tree: SourceTree, call: NodeHandle, original_name: str, new_name: str) -> None:
  """
  Points the ``label`` of the registration at the new node name.

  A function label keeps its logic: string literals and identifiers equal to
  ``original_name`` inside its body become the quoted new name. Any other
  label value is replaced, and a missing label is inserted.
  """
  quote = _quote_of(tree, call_arguments(call.node)[0])
  replacement = _quoted(new_name, quote)
  options = _options(call.node)
  if options is None:
    return
  member = _property(tree, options, LABEL_KEY)

  function = None
  if member is not None and member.type == "method_definition":
    function = member
  elif member is not None and member.type == "pair":
    value = member.child_by_field_name("value")
    if value is not None and value.type in CALLABLE_KINDS:
      function = value

  if function is None:
    _set_property(tree, call, LABEL_KEY, replacement)
    return

  body = function.child_by_field_name("body")
  if body is None:
    return
  original = _unquote(original_name)
  edits: List[Edit] = []
  for node in walk(body):
    if node.type in ("string", "identifier") and _unquote(tree.node_text(node)) == original:
      literal = _quoted(new_name, tree.node_text(node)[0]) if node.type == "string" else replacement
      edits.append(Edit(node.start_byte, node.end_byte, literal))
  tree.apply_edits(edits)


def rewrite_registration_document(markup: str, category: str, original_name: str, new_name: str) -> str:
  """
  Rewrites the editor definition of a node.

  For every script element: attribute values equal to ``original_name``
  (``data-template-name``, ``data-help-name``) become ``new_name``. Scripts
  holding the registration call get the new identity, the category and the
  label. Only the changed spans of the document are replaced.

  Args:
      markup: Companion ``.html`` document.
      category: Palette category.
      original_name: Current node type.
      new_name: New node type.

  Returns:
      str: The rewritten document.

  Raises:
      RegistrationNotFoundError: If no script registers the node.
      ParseError: If the registration script is not valid JavaScript.
  """
  plain_original = _unquote(original_name)
  plain_new = _unquote(new_name)
  edits: List[Tuple[int, int, str]] = []
  registered = False

  for script in find_scripts(markup):
    for attr in script.attributes:
      if attr.value == plain_original:
        edits.append((attr.start, attr.end, plain_new))

    if REGISTER_CALL not in script.content:
      continue
    tree = parse_source(script.content, format=False)
    call = rewrite_registration_call(tree, plain_new, category)
    rewrite_label(tree, call, plain_original, plain_new)
    registered = True
    if tree.text != script.content:
      edits.append((script.content_start, script.content_end, tree.text))

  if not registered:
    raise RegistrationNotFoundError(f"No script registers '{plain_original}'")
  return splice(markup, edits)
