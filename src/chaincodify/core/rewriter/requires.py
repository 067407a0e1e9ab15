"""
Module-level Cleanup of Node Sources.

1.  `convert_requires_to_imports` moves CommonJS ``require`` declarations of a
    node module into ES ``import`` statements of the contract skeleton.
2.  `remove_registration_statements` drops ``RED.nodes.*`` calls, which have no
    meaning inside a contract.
"""

from typing import List, Optional, Tuple

import tree_sitter
from rich.markup import escape

from chaincodify.core.rewriter.aliases import declarators_removal
from chaincodify.core.rewriter.extractors import callee_text, call_arguments, statement_call
from chaincodify.core.skeleton import ChaincodeSkeleton, add_import
from chaincodify.core.syntax.tree import Edit, SourceTree, Target
from chaincodify.core.tracer import get_tracer
from chaincodify.utils.console import log_warning

REGISTRATION_PREFIX = "RED.nodes."


def _require_call(tree: SourceTree, value: Optional[tree_sitter.Node]) -> Tuple[Optional[tree_sitter.Node], Optional[str]]:
  """Returns the module string node and the accessed member of ``require('m')[.member]``."""
  if value is None:
    return None, None
  member = None
  if value.type == "member_expression":
    prop = value.child_by_field_name("property")
    member = tree.node_text(prop) if prop is not None else None
    value = value.child_by_field_name("object")
  if value is None or value.type != "call_expression" or callee_text(tree, value) != "require":
    return None, None
  args = call_arguments(value)
  if len(args) != 1 or args[0].type != "string":
    return None, None
  return args[0], member


def _named_imports(tree: SourceTree, pattern: tree_sitter.Node) -> Optional[str]:
  """``{ a, b: c }`` -> ``{ a, b as c }``; None for nested or defaulted patterns."""
  specifiers: List[str] = []
  for child in pattern.named_children:
    if child.type == "shorthand_property_identifier_pattern":
      specifiers.append(tree.node_text(child))
    elif child.type == "pair_pattern":
      key = child.child_by_field_name("key")
      value = child.child_by_field_name("value")
      if key is None or value is None or value.type != "identifier":
        return None
      key_text, value_text = tree.node_text(key), tree.node_text(value)
      specifiers.append(key_text if key_text == value_text else f"{key_text} as {value_text}")
    elif child.type == "comment":
      continue
    else:
      return None
  return "{ " + ", ".join(specifiers) + " }"


def import_statement(tree: SourceTree, declarator: tree_sitter.Node) -> Optional[str]:
  """
  Builds the ES import equivalent to a ``require`` declarator.

  Returns:
      Optional[str]: The import statement, or None if the declarator is not a
      plain ``require`` binding.
  """
  name = declarator.child_by_field_name("name")
  module, member = _require_call(tree, declarator.child_by_field_name("value"))
  if name is None or module is None:
    return None
  specifier = tree.node_text(module)

  if name.type == "identifier":
    local = tree.node_text(name)
    if member is None:
      return f"import {local} from {specifier};"
    clause = member if member == local else f"{member} as {local}"
    return f"import {{ {clause} }} from {specifier};"

  if name.type == "object_pattern" and member is None:
    named = _named_imports(tree, name)
    if named is not None:
      return f"import {named} from {specifier};"
  return None


def convert_requires_to_imports(source: SourceTree, skeleton: ChaincodeSkeleton) -> int:
  """
  Moves ``const x = require('m')`` declarations into skeleton imports.

  ``const x = require('m')`` becomes ``import x from 'm';``, object patterns
  become named imports (``{ a: b }`` -> ``{ a as b }``) and
  ``require('m').y`` becomes ``import { y } from 'm';``. The source
  declarations are removed. ``require`` calls in other positions are left
  in place with a warning.

  Args:
      source: Node module tree (mutated).
      skeleton: Contract receiving the imports (mutated).

  Returns:
      int: Number of declarations converted.
  """
  tracer = get_tracer()
  converted: List[tree_sitter.Node] = []
  for call in source.find_all("call_expression"):
    if callee_text(source, call) != "require":
      continue
    declarator = call.parent
    if declarator is not None and declarator.type == "member_expression":
      declarator = declarator.parent
    statement = None
    if declarator is not None and declarator.type == "variable_declarator":
      statement = import_statement(source, declarator)
    if statement is None:
      log_warning(f"Left unsupported require in place: {escape(source.node_text(call))}")
      tracer.log_warning(f"Unsupported require: {source.node_text(call)}")
      continue
    add_import(skeleton, statement)
    tracer.log_mutation("variable_declarator", source.node_text(declarator), statement)
    converted.append(declarator)

  source.apply_edits(declarators_removal(source, converted))
  return len(converted)


def remove_registration_statements(tree: SourceTree, scope: Optional[Target] = None) -> int:
  """
  Removes expression statements that consist of a ``RED.nodes.*`` call.

  Args:
      tree: Tree to mutate.
      scope: Subtree to clean. Defaults to the whole tree.

  Returns:
      int: Number of statements removed.
  """
  within = tree.resolve(scope) if scope is not None else tree.root
  edits = []
  for statement in tree.find_all("expression_statement", within=within):
    call = statement_call(statement)
    if call is None:
      continue
    if "".join(tree.node_text(call).split()).startswith(REGISTRATION_PREFIX):
      get_tracer().log_mutation("expression_statement", tree.node_text(statement), "(removed)")
      start, end = tree.removal_range(statement)
      edits.append(Edit(start, end, ""))
  return tree.apply_edits(edits)
