"""
Alias and Reference Resolution.

Node code routinely captures the receiver or its configuration under a local
name:

.. code-block:: javascript

    var node = this;
    var self = node;
    var cfg = config;
    self.on("input", function (msg) { node.send(msg); });

The statement transformer matches callees textually (``this.send``), so these
aliases are collapsed back to one canonical name before it runs:

1.  `find_references` finds declarators that re-state a binding
    (``var self = node``).
2.  `erase_reassignments` removes an alias chain and rewrites its references.
3.  `rename_binding` renames a declaration and every reference to it, refusing
    names that would capture or shadow another binding.
4.  `ensure_environment_consistency` applies the above to ``this`` and to the
    node definition's first parameter.

References are matched through `ScopeAnalyzer` bindings, so shadowed names in
nested scopes are left alone. Binding resolution failures count as "no match".
"""

import re
from typing import Dict, List, Optional, Set, Union

import tree_sitter
from rich.markup import escape

from chaincodify.core.errors import BindingResolutionError, IncompatibleFormatError
from chaincodify.core.rewriter.scopes import Binding, ScopeAnalyzer, Span, span_of
from chaincodify.core.syntax.tree import Edit, SourceTree, Target, walk
from chaincodify.core.tracer import get_tracer
from chaincodify.utils.console import log_warning

AliasTarget = Union[str, tree_sitter.Node, Binding]

_IDENTIFIER_CHAR = re.compile(r"[\w$.]")

# Each collapse removes at least one declarator, so this bounds legitimate chains.
_MAX_COLLAPSES = 256


def _scope_node(tree: SourceTree, scope: Optional[Target]) -> tree_sitter.Node:
  return tree.resolve(scope) if scope is not None else tree.root


def _declarators(tree: SourceTree, scope: Optional[Target]) -> List[tree_sitter.Node]:
  return tree.find_all("variable_declarator", within=_scope_node(tree, scope))


def _target_binding(analyzer: ScopeAnalyzer, target: Union[tree_sitter.Node, Binding]) -> Binding:
  if isinstance(target, Binding):
    return target
  return analyzer.binding_of(target)


def find_references(
  tree: SourceTree,
  scope: Optional[Target],
  target: Union[tree_sitter.Node, Binding],
  analyzer: Optional[ScopeAnalyzer] = None,
) -> List[tree_sitter.Node]:
  """
  Finds declarators whose initializer re-states ``target``.

  Every identifier in ``scope`` bound to the target's binding (or to an import
  alias of it) is a reference. A declarator whose initializer text equals the
  text of any reference is part of the target's alias chain.

  Args:
      tree: Tree to search.
      scope: Subtree to search. Defaults to the whole tree.
      target: Identifier, ``this``, declarator or binding.
      analyzer: Analysis of the current tree. Built on demand.

  Returns:
      List[Node]: Matching ``variable_declarator`` nodes in source order. Empty
      when the target cannot be resolved.
  """
  analyzer = analyzer if analyzer is not None and not analyzer.stale else ScopeAnalyzer(tree)
  try:
    binding = _target_binding(analyzer, target)
  except BindingResolutionError:
    return []

  texts = {tree.node_text(node) for node in analyzer.references(binding, within=scope)}
  texts.discard("")
  found = []
  for declarator in _declarators(tree, scope):
    value = declarator.child_by_field_name("value")
    if value is not None and tree.node_text(value) in texts:
      found.append(declarator)
  return found


def _ends_with_name(text: str, name: str) -> bool:
  """``var node = this`` ends with ``this`` at an identifier boundary."""
  text = text.rstrip().rstrip(";").rstrip()
  if not text.endswith(name):
    return False
  before = text[: len(text) - len(name)]
  return not before or _IDENTIFIER_CHAR.match(before[-1]) is None


def _rebinding_declarator(
  tree: SourceTree,
  scope: Optional[Target],
  variable: AliasTarget,
  analyzer: ScopeAnalyzer,
) -> Optional[tree_sitter.Node]:
  """Last declarator in ``scope`` that re-binds ``variable``."""
  found = None
  if isinstance(variable, str):
    for declarator in _declarators(tree, scope):
      name = declarator.child_by_field_name("name")
      if declarator.child_by_field_name("value") is None or name is None or name.type != "identifier":
        continue
      if _ends_with_name(tree.node_text(declarator), variable):
        found = declarator
    return found

  try:
    binding = _target_binding(analyzer, variable)
  except BindingResolutionError:
    return None
  for declarator in _declarators(tree, scope):
    value = declarator.child_by_field_name("value")
    name = declarator.child_by_field_name("name")
    if value is None or name is None or name.type != "identifier" or value.type not in ("identifier", "this"):
      continue
    try:
      if analyzer.binding_of(value).aliases(binding):
        found = declarator
    except BindingResolutionError:
      continue
  return found


def declarators_removal(tree: SourceTree, declarators: List[tree_sitter.Node]) -> List[Edit]:
  """
  Edits removing ``declarators`` from their declarations.

  A declaration that loses all its declarators is removed as a whole. Otherwise
  each run of adjacent removed declarators is cut together with one separating
  comma, leaving the remaining declarators untouched.
  """
  groups: Dict[Span, List[tree_sitter.Node]] = {}
  owners: Dict[Span, tree_sitter.Node] = {}
  for declarator in declarators:
    owner = declarator.parent if declarator.parent is not None else declarator
    groups.setdefault(span_of(owner), []).append(declarator)
    owners[span_of(owner)] = owner

  edits: List[Edit] = []
  for key, members in groups.items():
    owner = owners[key]
    siblings = [d for d in owner.named_children if d.type == "variable_declarator"]
    removed = {span_of(d) for d in members}
    if owner.type == "variable_declarator" or all(span_of(d) in removed for d in siblings):
      start, end = tree.removal_range(owner)
      edits.append(Edit(start, end, ""))
      continue

    index = 0
    while index < len(siblings):
      if span_of(siblings[index]) not in removed:
        index += 1
        continue
      first = index
      while index < len(siblings) and span_of(siblings[index]) in removed:
        index += 1
      last = index - 1
      if index < len(siblings):
        edits.append(Edit(siblings[first].start_byte, siblings[index].start_byte, ""))
      else:
        edits.append(Edit(siblings[first - 1].end_byte, siblings[last].end_byte, ""))
  return edits


def _reference_edit(tree: SourceTree, node: tree_sitter.Node, replacement: str) -> Edit:
  if node.type in ("shorthand_property_identifier", "shorthand_property_identifier_pattern"):
    return Edit(node.start_byte, node.end_byte, f"{tree.node_text(node)}: {replacement}")
  return Edit(node.start_byte, node.end_byte, replacement)


def _unwrap(node: tree_sitter.Node) -> tree_sitter.Node:
  while node.type == "parenthesized_expression" and node.named_children:
    node = node.named_children[0]
  return node


def _is_alias_restatement(analyzer: ScopeAnalyzer, statement: tree_sitter.Node, alias_set: List[Binding]) -> bool:
  """``node;`` or ``self = node;`` where every operand belongs to the alias set."""
  if statement.type != "expression_statement" or not statement.named_children:
    return False
  expression = _unwrap(statement.named_children[0])
  operands = [expression]
  if expression.type == "assignment_expression":
    left = expression.child_by_field_name("left")
    right = expression.child_by_field_name("right")
    if left is None or right is None:
      return False
    operands = [_unwrap(left), _unwrap(right)]
  for operand in operands:
    if operand.type not in ("identifier", "this"):
      return False
    try:
      bound = analyzer.binding_of(operand)
    except BindingResolutionError:
      return False
    if not any(bound.aliases(alias) for alias in alias_set):
      return False
  return True


def erase_reassignments(
  tree: SourceTree,
  scope: Optional[Target],
  variable: AliasTarget,
  replacement: Optional[str] = None,
) -> int:
  """
  Collapses the alias chain of ``variable`` back to one canonical name.

  The last declarator in ``scope`` re-binding ``variable`` is located (by
  trailing name text when ``variable`` is a string, by binding equality
  otherwise). Declarators re-stating it are collected transitively with
  `find_references`. All of them are removed, every reference to their
  bindings is rewritten to the replacement text, and expression statements
  that only re-state an alias are dropped.

  Args:
      tree: Tree to mutate.
      scope: Subtree to search (node or handle). Defaults to the whole tree.
      variable: Name, node or binding the aliases point to.
      replacement: Canonical text. Defaults to ``variable``'s own text.

  Returns:
      int: Number of declarators removed. Zero when no alias exists.
  """
  analyzer = ScopeAnalyzer(tree)
  first = _rebinding_declarator(tree, scope, variable, analyzer)
  if first is None:
    return 0

  if replacement is None:
    if isinstance(variable, str):
      replacement = variable
    elif isinstance(variable, Binding):
      replacement = variable.name
    else:
      replacement = tree.node_text(variable)

  chain = [first]
  seen: Set = {span_of(first)}
  alias_set: List[Binding] = []
  index = 0
  while index < len(chain):
    declarator = chain[index]
    index += 1
    try:
      binding = analyzer.binding_of(declarator)
    except BindingResolutionError:
      continue
    alias_set.append(binding)
    for follower in find_references(tree, scope, binding, analyzer):
      if span_of(follower) not in seen:
        seen.add(span_of(follower))
        chain.append(follower)

  edits = declarators_removal(tree, chain)
  for binding in alias_set:
    for node in analyzer.references(binding, aliased=False):
      if binding.declaration is not None and span_of(node) == span_of(binding.declaration):
        continue
      edits.append(_reference_edit(tree, node, replacement))

  for statement in tree.find_all("expression_statement", within=_scope_node(tree, scope)):
    if _is_alias_restatement(analyzer, statement, alias_set):
      start, end = tree.removal_range(statement)
      edits.append(Edit(start, end, ""))

  get_tracer().log_mutation(
    "variable_declarator",
    "; ".join(tree.node_text(d) for d in chain),
    f"(collapsed to {replacement})",
  )
  tree.apply_edits(edits)
  return len(chain)


def collapse_aliases(tree: SourceTree, scope: Optional[Target], variable: AliasTarget, replacement: Optional[str] = None) -> int:
  """Runs `erase_reassignments` until no alias of ``variable`` is left."""
  total = 0
  for _ in range(_MAX_COLLAPSES):
    removed = erase_reassignments(tree, scope, variable, replacement)
    if not removed:
      break
    total += removed
  return total


def _captured_name(analyzer: ScopeAnalyzer, binding: Binding, nodes: List[tree_sitter.Node], new_name: str) -> bool:
  """
  True when renaming ``binding`` to ``new_name`` would change what some name refers to.

  Either a reference of ``binding`` would resolve to another declaration of
  ``new_name``, or an existing use of ``new_name`` from an enclosing scope
  would resolve to the renamed binding.
  """
  for node in nodes:
    existing = analyzer.scope_of(node).lookup(new_name)
    if existing is not None and existing is not binding:
      return True

  if binding.declaration is None:
    return False
  home = analyzer.scope_of(binding.declaration)
  outer = home.parent.lookup(new_name) if home.parent is not None else None
  for node in walk(home.node):
    if node.type not in ("identifier", "shorthand_property_identifier"):
      continue
    if analyzer.tree.node_text(node) != new_name:
      continue
    try:
      resolved = analyzer.binding_of(node)
    except BindingResolutionError:
      continue
    if resolved.kind == "global" or resolved is outer:
      return True
  return False


def rename_binding(tree: SourceTree, declaration: Union[tree_sitter.Node, Binding], new_name: str) -> int:
  """
  Renames a declaration and every reference bound to it.

  Args:
      tree: Tree to mutate.
      declaration: Declaring identifier (e.g. a parameter) or its binding.
      new_name: Replacement name.

  Returns:
      int: Number of occurrences rewritten (declaration included).

  Raises:
      IncompatibleFormatError: If ``new_name`` is already bound where the
          rename would reach, so references would be captured.
  """
  analyzer = ScopeAnalyzer(tree)
  try:
    binding = _target_binding(analyzer, declaration)
  except BindingResolutionError:
    return 0
  if binding.name == new_name:
    return 0
  nodes = analyzer.references(binding, aliased=False)
  if _captured_name(analyzer, binding, nodes, new_name):
    raise IncompatibleFormatError(f"Cannot rename '{binding.name}' to '{new_name}': the name is already in use")
  edits = [_reference_edit(tree, node, new_name) for node in nodes]
  get_tracer().log_mutation("identifier", binding.name, new_name)
  return tree.apply_edits(edits)


def _first_parameter(function: tree_sitter.Node) -> Optional[tree_sitter.Node]:
  params = function.child_by_field_name("parameters")
  if params is None:
    return None
  for param in params.named_children:
    if param.type != "comment":
      return param
  return None


def ensure_environment_consistency(
  tree: SourceTree,
  body: Target,
  definition: Target,
  config_name: str = "config",
) -> None:
  """
  Normalizes the receiver and configuration names inside a node definition.

  1.  Every alias of ``this`` in ``body`` collapses to ``this``.
  2.  The definition's first parameter is renamed to ``config_name`` (or added
      when the definition takes no parameter), and its aliases collapse to it.

  Args:
      tree: Tree to mutate.
      body: Body block of the node definition (handle recommended).
      definition: The node definition function (handle recommended).
      config_name: Canonical configuration parameter name.
  """
  body = tree.handle(body)
  definition = tree.handle(definition)
  collapse_aliases(tree, body, "this")

  param = _first_parameter(definition.node)
  if param is None:
    for node in walk(definition.node):
      if node.type in ("identifier", "shorthand_property_identifier") and tree.node_text(node) == config_name:
        raise IncompatibleFormatError(f"Cannot add parameter '{config_name}': the name is already in use")
    params = definition.node.child_by_field_name("parameters")
    tree.insert(params.start_byte + 1, config_name)
    get_tracer().log_mutation("formal_parameters", "()", f"({config_name})")
    return

  if param.type != "identifier":
    log_warning(f"Node definition parameter '{escape(tree.node_text(param))}' is not a plain name; left unchanged")
    return

  if tree.node_text(param) != config_name:
    rename_binding(tree, param, config_name)
  collapse_aliases(tree, body, config_name, config_name)
