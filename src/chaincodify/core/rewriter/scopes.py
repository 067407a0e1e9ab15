"""
Lexical Scope Analysis.

Maps every identifier occurrence of a JavaScript tree to the declaration it
binds to, so that alias detection can compare bindings instead of names.

Rules:

1.  **Function scopes** (program, functions, methods, arrow functions) own
    ``var`` declarations, parameters and, for non-arrow functions, a ``this``
    binding. Arrow functions resolve ``this`` through their parent.
2.  **Block scopes** (blocks, ``for`` heads, ``catch`` clauses, class bodies)
    own ``let``/``const``/``class`` and function declarations.
3.  Declarations are hoisted: a reference resolves to the nearest enclosing
    scope that declares the name anywhere in its body.
4.  Imports and ``require`` declarators record an *origin* (module and member).
    Two bindings with the same origin are aliases of one symbol.
5.  Names declared nowhere resolve to a shared global binding per name.

The analysis is a snapshot of the tree at construction time; callers build a
new analyzer after mutating the tree.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import tree_sitter

from chaincodify.core.errors import BindingResolutionError
from chaincodify.core.syntax.tree import SourceTree, Target, walk

Span = Tuple[int, int, str]

FUNCTION_SCOPES = frozenset(
  {
    "function_declaration",
    "function_expression",
    "function",
    "generator_function_declaration",
    "generator_function",
    "arrow_function",
    "method_definition",
  }
)
BLOCK_SCOPES = frozenset({"statement_block", "for_statement", "for_in_statement", "catch_clause", "class_body", "switch_body"})
REFERENCE_KINDS = frozenset({"identifier", "shorthand_property_identifier", "this"})


def span_of(node: tree_sitter.Node) -> Span:
  return node.start_byte, node.end_byte, node.type


@dataclass(eq=False)
class Binding:
  """
  One declared name.

  Bindings compare by identity: two identifiers are bound to the same
  declaration iff they resolve to the same `Binding` object.

  Attributes:
      name: Declared name (``this`` for receiver bindings).
      kind: ``var``, ``let``, ``const``, ``function``, ``class``, ``param``,
          ``catch``, ``import``, ``this`` or ``global``.
      declaration: The declaring identifier node, None for ``this``/``global``.
      declarator: Enclosing ``variable_declarator`` for variable bindings.
      origin: ``module:<name>#<member>`` for imported or required symbols.
  """

  name: str
  kind: str
  declaration: Optional[tree_sitter.Node] = None
  declarator: Optional[tree_sitter.Node] = None
  origin: Optional[str] = None

  def aliases(self, other: "Binding") -> bool:
    """True when both bindings denote the same symbol."""
    if self is other:
      return True
    return self.origin is not None and self.origin == other.origin

  def __repr__(self) -> str:
    suffix = f" from {self.origin}" if self.origin else ""
    return f"<Binding {self.kind} {self.name}{suffix}>"


@dataclass(eq=False)
class Scope:
  kind: str
  node: tree_sitter.Node
  parent: Optional["Scope"] = None
  is_function: bool = False
  this_binding: Optional[Binding] = None
  bindings: Dict[str, Binding] = field(default_factory=dict)

  def function_scope(self) -> "Scope":
    scope = self
    while not scope.is_function and scope.parent is not None:
      scope = scope.parent
    return scope

  def lookup(self, name: str) -> Optional[Binding]:
    scope: Optional[Scope] = self
    while scope is not None:
      if name in scope.bindings:
        return scope.bindings[name]
      scope = scope.parent
    return None

  def receiver(self) -> Optional[Binding]:
    scope: Optional[Scope] = self
    while scope is not None:
      if scope.this_binding is not None:
        return scope.this_binding
      scope = scope.parent
    return None


def _unquote(text: str) -> str:
  return text.strip().strip("'\"`")


def _require_module(tree: SourceTree, value: Optional[tree_sitter.Node]) -> Tuple[Optional[str], Optional[str]]:
  """Returns ``(module, member)`` for ``require('m')`` and ``require('m').member`` initializers."""
  if value is None:
    return None, None
  member = None
  if value.type == "member_expression":
    prop = value.child_by_field_name("property")
    member = tree.node_text(prop) if prop is not None else None
    value = value.child_by_field_name("object")
    if value is None:
      return None, None
  if value.type != "call_expression":
    return None, None
  callee = value.child_by_field_name("function")
  if callee is None or tree.node_text(callee) != "require":
    return None, None
  arguments = value.child_by_field_name("arguments")
  args = [a for a in arguments.named_children if a.type != "comment"] if arguments else []
  if not args or args[0].type != "string":
    return None, None
  return _unquote(tree.node_text(args[0])), member


class ScopeAnalyzer:
  """
  Resolves identifiers of a `SourceTree` to `Binding` objects.

  Attributes:
      tree: Analyzed tree.
      globals: Shared bindings of undeclared names.
  """

  def __init__(self, tree: SourceTree) -> None:
    self.tree = tree
    self.globals: Dict[str, Binding] = {}
    self._source = tree.source
    self._scopes: Dict[Span, Scope] = {}
    self._resolved: Dict[Span, Binding] = {}
    self._declared: Dict[Span, Binding] = {}
    self._bindings: List[Binding] = []

    root = tree.root
    program = Scope("program", root, is_function=True)
    program.this_binding = Binding("this", "this")
    self._scopes[span_of(root)] = program
    self._declare(root, program)
    self._resolve_all(root)

  @property
  def stale(self) -> bool:
    """True once the tree was mutated after the analysis."""
    return self.tree.source is not self._source

  # --- Declaration pass ---

  def _new_scope(self, node: tree_sitter.Node, parent: Scope) -> Scope:
    if node.type in FUNCTION_SCOPES:
      scope = Scope(node.type, node, parent, is_function=True)
      if node.type != "arrow_function":
        scope.this_binding = Binding("this", "this")
    else:
      scope = Scope(node.type, node, parent)
      if node.type == "class_body":
        scope.this_binding = Binding("this", "this")
    self._scopes[span_of(node)] = scope
    return scope

  def _creates_scope(self, node: tree_sitter.Node) -> bool:
    if node.type in FUNCTION_SCOPES:
      return True
    if node.type not in BLOCK_SCOPES:
      return False
    # A function body shares the function scope.
    return not (node.type == "statement_block" and node.parent is not None and node.parent.type in FUNCTION_SCOPES)

  def _bind(self, scope: Scope, identifier: tree_sitter.Node, kind: str, **extra) -> Binding:
    name = self.tree.node_text(identifier)
    binding = Binding(name, kind, declaration=identifier, **extra)
    scope.bindings[name] = binding
    self._declared[span_of(identifier)] = binding
    self._bindings.append(binding)
    return binding

  def _pattern_identifiers(self, pattern: tree_sitter.Node) -> Iterable[Tuple[tree_sitter.Node, Optional[str]]]:
    """Yields ``(identifier, property key)`` for every name a binding pattern declares."""
    if pattern.type in ("identifier", "shorthand_property_identifier_pattern"):
      yield pattern, self.tree.node_text(pattern)
      return
    if pattern.type == "pair_pattern":
      key = pattern.child_by_field_name("key")
      value = pattern.child_by_field_name("value")
      if value is not None:
        for identifier, _ in self._pattern_identifiers(value):
          yield identifier, self.tree.node_text(key) if key is not None else None
      return
    if pattern.type in ("assignment_pattern", "object_assignment_pattern"):
      left = pattern.child_by_field_name("left")
      if left is not None:
        yield from self._pattern_identifiers(left)
      return
    if pattern.type in ("object_pattern", "array_pattern", "rest_pattern"):
      for child in pattern.named_children:
        yield from self._pattern_identifiers(child)

  def _declare_variables(self, declaration: tree_sitter.Node, scope: Scope) -> None:
    keyword = declaration.children[0].type if declaration.children else "var"
    target = scope.function_scope() if declaration.type == "variable_declaration" else scope
    for declarator in declaration.named_children:
      if declarator.type != "variable_declarator":
        continue
      name = declarator.child_by_field_name("name")
      if name is None:
        continue
      module, member = _require_module(self.tree, declarator.child_by_field_name("value"))
      for identifier, key in self._pattern_identifiers(name):
        origin = None
        if module is not None:
          if name.type == "identifier":
            origin = f"module:{module}#{member or 'default'}"
          else:
            origin = f"module:{module}#{key}"
        self._bind(target, identifier, keyword, declarator=declarator, origin=origin)

  def _declare_import(self, statement: tree_sitter.Node, scope: Scope) -> None:
    source = statement.child_by_field_name("source")
    module = _unquote(self.tree.node_text(source)) if source is not None else ""
    for node in walk(statement):
      if node.type == "import_clause":
        for child in node.named_children:
          if child.type == "identifier":
            self._bind(scope, child, "import", origin=f"module:{module}#default")
      elif node.type == "namespace_import":
        for child in node.named_children:
          if child.type == "identifier":
            self._bind(scope, child, "import", origin=f"module:{module}#*")
      elif node.type == "import_specifier":
        imported = node.child_by_field_name("name")
        local = node.child_by_field_name("alias") or imported
        if imported is not None and local is not None:
          self._bind(scope, local, "import", origin=f"module:{module}#{self.tree.node_text(imported)}")

  def _declare_parameters(self, function: tree_sitter.Node, scope: Scope) -> None:
    single = function.child_by_field_name("parameter")
    if single is not None:
      self._bind(scope, single, "param")
      return
    params = function.child_by_field_name("parameters")
    if params is None:
      return
    for param in params.named_children:
      # TypeScript wraps parameters in required/optional_parameter nodes.
      if param.type in ("required_parameter", "optional_parameter"):
        param = param.child_by_field_name("pattern") or param
      for identifier, _ in self._pattern_identifiers(param):
        self._bind(scope, identifier, "param")

  def _declare(self, root: tree_sitter.Node, root_scope: Scope) -> None:
    stack: List[Tuple[tree_sitter.Node, Scope]] = [(root, root_scope)]
    while stack:
      node, scope = stack.pop()
      kind = node.type

      if kind == "ERROR":
        continue

      if node is not root and self._creates_scope(node):
        outer = scope
        scope = self._new_scope(node, outer)
        name = node.child_by_field_name("name")
        if kind in ("function_declaration", "generator_function_declaration") and name is not None:
          self._bind(outer, name, "function")
        elif kind in ("function_expression", "function", "generator_function") and name is not None:
          self._bind(scope, name, "function")
        if kind in FUNCTION_SCOPES:
          self._declare_parameters(node, scope)
        if kind == "catch_clause":
          param = node.child_by_field_name("parameter")
          if param is not None:
            for identifier, _ in self._pattern_identifiers(param):
              self._bind(scope, identifier, "catch")

      if kind in ("variable_declaration", "lexical_declaration"):
        self._declare_variables(node, scope)
      elif kind == "import_statement":
        self._declare_import(node, scope)
      elif kind in ("class_declaration", "class"):
        name = node.child_by_field_name("name")
        if name is not None and name.type == "identifier":
          self._bind(scope, name, "class")
      elif kind == "for_in_statement":
        left = node.child_by_field_name("left")
        keyword = node.child_by_field_name("kind")
        if left is not None and keyword is not None:
          target = scope.function_scope() if self.tree.node_text(keyword) == "var" else scope
          for identifier, _ in self._pattern_identifiers(left):
            self._bind(target, identifier, self.tree.node_text(keyword))

      for child in reversed(node.children):
        stack.append((child, scope))

  # --- Resolution pass ---

  def _resolve_all(self, root: tree_sitter.Node) -> None:
    stack: List[Tuple[tree_sitter.Node, Scope]] = [(root, self._scopes[span_of(root)])]
    while stack:
      node, scope = stack.pop()
      if node.type == "ERROR":
        continue
      scope = self._scopes.get(span_of(node), scope) if node is not root else scope
      if node.type in REFERENCE_KINDS:
        key = span_of(node)
        if key in self._declared:
          self._resolved[key] = self._declared[key]
        elif node.type == "this":
          receiver = scope.receiver()
          if receiver is not None:
            self._resolved[key] = receiver
        else:
          name = self.tree.node_text(node)
          binding = scope.lookup(name)
          if binding is None:
            binding = self.globals.setdefault(name, Binding(name, "global"))
          self._resolved[key] = binding
      for child in reversed(node.children):
        stack.append((child, scope))

  # --- Queries ---

  def binding_of(self, node: tree_sitter.Node) -> Binding:
    """
    Resolves an identifier, shorthand property or ``this`` to its binding.

    A ``variable_declarator`` resolves to the binding it declares.

    Raises:
        BindingResolutionError: If the node is not a resolvable reference, was
            not part of the analyzed tree, or sits inside a syntax error.
    """
    if node.type == "variable_declarator":
      name = node.child_by_field_name("name")
      if name is None or name.type != "identifier":
        raise BindingResolutionError(f"Declarator at byte {node.start_byte} does not bind a single name")
      node = name
    key = span_of(node)
    binding = self._resolved.get(key) or self._declared.get(key)
    if binding is None:
      raise BindingResolutionError(f"Cannot resolve {node.type} '{self.tree.node_text(node)}' at byte {node.start_byte}")
    return binding

  def scope_of(self, node: tree_sitter.Node) -> Scope:
    """Innermost scope containing ``node``."""
    current: Optional[tree_sitter.Node] = node
    while current is not None:
      scope = self._scopes.get(span_of(current))
      if scope is not None and current is not node:
        return scope
      current = current.parent
    return self._scopes[span_of(self.tree.root)]

  def references(self, binding: Binding, within: Optional[Target] = None, aliased: bool = True) -> List[tree_sitter.Node]:
    """
    Every reference node (declarations included) bound to ``binding``.

    Args:
        binding: Target binding.
        within: Restrict the search to this subtree.
        aliased: Also accept bindings that alias ``binding`` through their origin.

    Returns:
        List[Node]: Matching nodes in source order.
    """
    scope = self.tree.resolve(within) if within is not None else self.tree.root
    found = []
    for node in walk(scope):
      if node.type not in REFERENCE_KINDS and span_of(node) not in self._declared:
        continue
      resolved = self._resolved.get(span_of(node)) or self._declared.get(span_of(node))
      if resolved is None:
        continue
      if resolved is binding or (aliased and resolved.aliases(binding)):
        found.append(node)
    return found

  def declared(self) -> List[Binding]:
    return list(self._bindings)
