"""
Orchestration Engine for Node Conversions.

This module provides the `ConversionEngine`, which converts one node module
(its ``.js`` source and companion ``.html`` document) into a Fabric contract.
Nothing is written to disk: the engine returns a `ConversionResult` holding
every artifact, and the caller persists it once the conversion succeeded.

The pipeline consists of:

1.  **Parsing**: the module source is parsed and formatted.
2.  **Extraction**: the ``module.exports`` function, the node definition and
    its body are located.
3.  **Cleanup**: ``require`` declarations move into skeleton imports, receiver
    and config aliases are collapsed and ``RED.nodes.*`` calls are dropped.
4.  **Rewriting**: node runtime calls are rewritten for the contract runtime.
5.  **Merge**: ambient and handler statements move into the contract's
    ``_internalLogic`` body, which is rewritten once more.
6.  **Emission**: the contract is validated, formatted and, when configured,
    lowered to CommonJS.
7.  **Registration** (side channel): a fresh tree of the module gets the new
    node type and, when configured, a ledger proxy body; the ``.html``
    document gets the new identity.
"""

from pathlib import Path
from typing import Optional, Union

from rich.markup import escape

from chaincodify.config import RuntimeConfig
from chaincodify.core.conversion_result import ConversionResult, RegistrationIdentity
from chaincodify.core.errors import ConversionError, IncompatibleFormatError
from chaincodify.core.lowering import lower_to_javascript
from chaincodify.core.manifest import suffixed_name
from chaincodify.core.proxy import connect_node_to_ledger
from chaincodify.core.registration import (
  find_registration_call,
  rewrite_registration_document,
  update_registration_identity,
)
from chaincodify.core.rewriter import (
  ExportDescriptor,
  add_logic_to_skeleton,
  convert_requires_to_imports,
  ensure_environment_consistency,
  extract_contents,
  extract_export,
  extract_handlers,
  remove_registration_statements,
  transform_logic,
)
from chaincodify.core.rewriter.extractors import call_arguments
from chaincodify.core.skeleton import build_skeleton
from chaincodify.core.syntax import SourceTree, format_tree, parse_source
from chaincodify.core.tracer import get_tracer, reset_tracer
from chaincodify.utils.console import log_info


def _unquote(text: str) -> str:
  return text.strip("'\"`")


class ConversionEngine:
  """
  Converts node modules according to a `RuntimeConfig`.

  The engine holds no per-module state, so one instance converts a whole
  batch.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
    """
    Initializes the engine.

    Args:
        config (RuntimeConfig, optional): Runtime settings. Loaded from the
            environment (``pyproject.toml``) when omitted.
    """
    self.config = config or RuntimeConfig.load()

  def parse(self, code: str, path: Optional[Union[str, Path]] = None) -> SourceTree:
    """
    Parses a node module.

    Raises:
        ParseError: If the source is not valid JavaScript.
    """
    return parse_source(code, dialect="javascript", path=Path(path) if path else None)

  def extract(self, tree: SourceTree) -> ExportDescriptor:
    """
    Locates the node definition of a module.

    Raises:
        IncompatibleFormatError: If the module has no ``module.exports``
            assignment or its shape is not a node module.
    """
    export = extract_export(tree)
    if export is None:
      raise IncompatibleFormatError("No module.exports found")
    return extract_contents(export)

  def registered_type(self, tree: SourceTree) -> str:
    """
    Reads the node type from the module's registration call.

    Raises:
        RegistrationNotFoundError: If the module registers no node.
        IncompatibleFormatError: If the node type is not a literal.
    """
    call = find_registration_call(tree)
    args = call_arguments(call)
    if not args or args[0].type not in ("string", "template_string"):
      raise IncompatibleFormatError("The node type of the registration call is not a string literal")
    return _unquote(tree.node_text(args[0]))

  def build_contract(self, tree: SourceTree, contents: ExportDescriptor) -> SourceTree:
    """
    Runs the cleanup, rewriting and merge phases on an extracted module.

    Args:
        tree: Module tree (mutated).
        contents: Descriptor from `extract`.

    Returns:
        SourceTree: The formatted TypeScript contract.

    Raises:
        IncompatibleFormatError: If a handler cannot be expressed in the contract.
        MissingHandlerError: If the node has no ``input`` handler.
        ParseError: If the merged contract is not valid TypeScript.
    """
    tracer = get_tracer()
    rewrites = self.config.call_rewrites

    tracer.start_phase("Skeleton", f"{self.config.variant.value} contract")
    skeleton = build_skeleton(self.config.variant, self.config.class_name)
    tracer.end_phase()

    tracer.start_phase("Cleanup", "Imports, aliases and registration calls")
    convert_requires_to_imports(tree, skeleton)
    ensure_environment_consistency(tree, contents.body, contents.definition)
    remove_registration_statements(tree, contents.body)
    tracer.end_phase()

    tracer.start_phase("Rewrite", "Node runtime calls")
    transform_logic(tree, contents.body, rewrites)
    tracer.end_phase()

    tracer.start_phase("Merge", "Handlers into _internalLogic")
    logic = extract_handlers(tree, contents.body)
    add_logic_to_skeleton(skeleton, logic)
    transform_logic(skeleton.tree, skeleton.body, rewrites)
    tracer.end_phase()

    contract = skeleton.tree
    contract.check()
    format_tree(contract)
    return contract

  def rename_module(self, code: str, identity: RegistrationIdentity, package_name: str) -> str:
    """
    Produces the Node-RED side of a converted node.

    The module is re-parsed from its original text, renamed and, when
    ``proxy_nodes`` is set, its node body is replaced by the ledger proxy.
    """
    tree = self.parse(code)
    if self.config.proxy_nodes:
      connect_node_to_ledger(
        tree,
        self.extract(tree),
        package_name,
        identity.new_name,
        self.config.ledger_endpoint_env,
      )
    update_registration_identity(tree, identity.new_name)
    format_tree(tree)
    return tree.text

  def run(
    self,
    code: str,
    markup: Optional[str] = None,
    package_name: str = "",
    path: Optional[Union[str, Path]] = None,
  ) -> ConversionResult:
    """
    Executes the full conversion of one node module.

    Args:
        code: Source of the node's ``.js`` module.
        markup: Companion ``.html`` document, if any.
        package_name: Package the chaincode is deployed under (used by the
            ledger proxy).
        path: Origin of ``code``, for messages.

    Returns:
        ConversionResult: Artifacts and trace. ``success`` is False when a
        `ConversionError` stopped the conversion.
    """
    reset_tracer()
    tracer = get_tracer()
    module = Path(path).name if path else "<memory>"
    tracer.start_phase("Conversion Pipeline", module)
    result = ConversionResult()

    try:
      tracer.start_phase("Parse", "Source text -> syntax tree")
      tree = self.parse(code, path)
      tracer.end_phase()

      tracer.start_phase("Extract", "module.exports -> node definition")
      contents = self.extract(tree)
      original = self.registered_type(tree)
      tracer.end_phase()

      new_name = suffixed_name(original, self.config.suffix)
      identity = RegistrationIdentity(
        original_name=original,
        new_name=new_name,
        category=self.config.effective_category,
        label=new_name,
      )
      result.node = original
      result.identity = identity
      log_info(
        f"Converting [node]{escape(original)}[/node] ({escape(contents.name)}) -> [node]{escape(new_name)}[/node]"
      )

      contract = self.build_contract(tree, contents)
      result.code = contract.text
      if self.config.emit_javascript:
        tracer.start_phase("Lowering", "TypeScript -> CommonJS")
        result.javascript = lower_to_javascript(contract.text)
        tracer.end_phase()

      tracer.start_phase("Registration", f"{original} -> {new_name}")
      result.node_code = self.rename_module(code, identity, package_name)
      if markup is not None:
        result.markup = rewrite_registration_document(markup, identity.category, original, new_name)
      tracer.end_phase()

    except ConversionError as e:
      if e.module is None:
        e.module = result.node or module
      tracer.log_warning(str(e))
      result.success = False
      result.errors.append(str(e))
      result.error_type = type(e).__name__

    tracer.close_phases()
    result.trace_events = tracer.export()
    return result
