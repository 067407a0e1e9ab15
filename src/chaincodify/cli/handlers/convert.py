"""
Convert Command Handler.

This module implements the logic for the `chaincodify convert` command.
It orchestrates:
1. Configuration loading (``pyproject.toml`` plus CLI overrides).
2. Reading the package manifest and the node sources it declares.
3. Per-node conversion via the Engine, under the configured failure policy.
4. Output writing: the renamed node package, one chaincode directory per
   node, rewritten flow documents and the optional trace log.

Nothing is written before every node has been processed, so an aborted batch
leaves no output behind and a skipped node leaves no partial chaincode. Output
is assembled in a staging directory and moved into place only once complete.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from rich.markup import escape
from rich.table import Table

from chaincodify.config import RuntimeConfig
from chaincodify.core.conversion_result import ConversionResult
from chaincodify.core.engine import ConversionEngine
from chaincodify.core.errors import ConversionError
from chaincodify.core.manifest import (
  MANIFEST_NAME,
  PackageManifest,
  chaincode_manifest,
  dump_json,
  load_manifest,
  output_directory_name,
  rename_manifest,
  rewrite_flow_documents,
  suffixed_name,
  suffixed_package_name,
  suffixed_path,
)
from chaincodify.core.serializer import persist, write_text
from chaincodify.core.syntax import parse_source
from chaincodify.enums import FailurePolicy
from chaincodify.utils.console import console, log_error, log_info, log_success, log_warning

CHAINCODE_DIR = "chaincode"
PACKAGE_DIR = "package"
CHAINCODE_ENTRY = Path("dist", "index.js")
_COPY_IGNORE = shutil.ignore_patterns("node_modules", ".git")


def handle_convert(
  package_dir: Path,
  output_path: Path,
  variant: Optional[str] = None,
  suffix: Optional[str] = None,
  category: Optional[str] = None,
  keep_going: Optional[bool] = None,
  emit_javascript: Optional[bool] = None,
  proxy_nodes: Optional[bool] = None,
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'convert' command execution.

  Args:
      package_dir: Extracted node package (the directory holding ``package.json``).
      output_path: Directory receiving ``<package>/package`` and ``<package>/chaincode``.
      variant: Override for the contract variant.
      suffix: Override for the rename suffix.
      category: Override for the palette category.
      keep_going: If True, failed nodes are skipped instead of aborting the batch.
      emit_javascript: Override for writing ``dist/index.js``.
      proxy_nodes: Override for replacing node bodies with the ledger proxy.
      json_trace_path: Optional path to dump the execution traces as JSON.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  manifest_path = package_dir / MANIFEST_NAME
  if not manifest_path.is_file():
    log_error(f"No {MANIFEST_NAME} found in [path]{escape(str(package_dir))}[/path]")
    return 1

  try:
    config = RuntimeConfig.load(
      suffix=suffix,
      category=category,
      variant=variant,
      emit_javascript=emit_javascript,
      proxy_nodes=proxy_nodes,
      failure_policy=FailurePolicy.SKIP.value if keep_going else None,
      search_path=package_dir,
    )
  except ValueError as e:
    log_error(f"Invalid configuration: {escape(str(e))}")
    return 1

  try:
    manifest = load_manifest(manifest_path)
  except ConversionError as e:
    log_error(escape(str(e)))
    return 1

  nodes = manifest.node_red.nodes
  if not nodes:
    log_error("No nodes found in the provided package")
    return 1

  package_name = suffixed_package_name(manifest.name, config.suffix)
  engine = ConversionEngine(config=config)
  results: Dict[str, ConversionResult] = {}

  log_info(f"Converting {len(nodes)} nodes from package [node]{escape(manifest.name)}[/node]...")
  for node, file in nodes.items():
    log_info(f"|- {escape(f'[{manifest.name}]')} Converting node [node]{escape(node)}[/node]...")
    result = _convert_node(engine, package_dir / file, package_name)
    results[node] = result
    if result.success:
      continue
    log_error(f"Converting node {escape(node)}: {escape('; '.join(result.errors))}")
    if config.failure_policy == FailurePolicy.ABORT:
      _write_traces(json_trace_path, results)
      _print_batch_summary(results)
      log_error("Aborting: no output was written.")
      return 1

  _write_traces(json_trace_path, results)
  converted = {node: res for node, res in results.items() if res.success}
  if not converted:
    _print_batch_summary(results)
    return 1

  target = output_path / output_directory_name(manifest.name)
  try:
    written = _publish_outputs(package_dir, target, manifest, converted, config)
  except (OSError, ConversionError) as e:
    log_error(f"Failed to write output to [path]{escape(str(target))}[/path]: {escape(str(e))}")
    return 1

  log_success(f"Wrote {written} files to [path]{escape(str(target))}[/path]")
  _print_batch_summary(results)
  return 0


def _convert_node(engine: ConversionEngine, source_path: Path, package_name: str) -> ConversionResult:
  """
  Runs the engine on one node's ``.js`` file and its sibling ``.html``.

  Returns:
      ConversionResult: The result; unreadable files yield a failed result.
  """
  markup_path = source_path.with_suffix(".html")
  try:
    with open(source_path, "rt", encoding="utf-8") as f:
      code = f.read()
    markup = None
    if markup_path.is_file():
      with open(markup_path, "rt", encoding="utf-8") as f:
        markup = f.read()
    else:
      log_warning(f"No editor definition found at [path]{escape(str(markup_path))}[/path]")
  except OSError as e:
    return ConversionResult(node=source_path.stem, success=False, errors=[str(e)], error_type=type(e).__name__)
  return engine.run(code, markup=markup, package_name=package_name, path=source_path)


def _copy_ignore(skipped_paths: Iterable[Path]) -> Callable[[str, List[str]], Set[str]]:
  """
  Builds a ``copytree`` filter skipping dependency folders and ``skipped_paths``.

  The output directory may lie inside the package being copied (``--out``
  defaults to ``./output``); skipping it keeps a run from copying earlier
  output, or its own staging directory, into the new package.
  """
  skipped = {p.resolve() for p in skipped_paths}

  def ignore(directory: str, names: List[str]) -> Set[str]:
    ignored = set(_COPY_IGNORE(directory, names))
    base = Path(directory).resolve()
    ignored.update(name for name in names if base / name in skipped)
    return ignored

  return ignore


def _publish_outputs(
  package_dir: Path,
  target: Path,
  manifest: PackageManifest,
  converted: Dict[str, ConversionResult],
  config: RuntimeConfig,
) -> int:
  """
  Writes every output into a staging directory beside ``target``, then moves it into place.

  A failed write removes the staging directory and leaves a previous
  ``target`` untouched. A successful one replaces ``target`` as a whole.

  Returns:
      int: Number of files written.
  """
  output_root = target.parent
  output_root.mkdir(parents=True, exist_ok=True)
  staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=output_root))
  ignore = _copy_ignore([output_root, target, staging])
  try:
    written = _write_outputs(package_dir, staging, manifest, converted, config, ignore)
  except Exception:
    shutil.rmtree(staging, ignore_errors=True)
    raise

  if target.exists():
    shutil.rmtree(target)
  staging.replace(target)
  return len(written)


def _write_outputs(
  package_dir: Path,
  target: Path,
  manifest: PackageManifest,
  converted: Dict[str, ConversionResult],
  config: RuntimeConfig,
  ignore: Callable[[str, List[str]], Set[str]],
) -> List[Path]:
  """
  Writes the renamed package and the chaincode of every converted node.

  Returns:
      List[Path]: Every file written.
  """
  package_out = target / PACKAGE_DIR
  shutil.copytree(package_dir, package_out, ignore=ignore)
  written: List[Path] = []

  renamed_sets: Dict[str, str] = {}
  renamed_types: Dict[str, str] = {}
  for node, result in converted.items():
    file = Path(manifest.node_red.nodes[node])
    renamed_sets[node] = suffixed_name(node, config.suffix)
    renamed_types[result.identity.original_name] = result.identity.new_name
    written.extend(_write_node_files(package_out, file, result, config.suffix))

  renamed = rename_manifest(manifest, config.suffix, renamed_sets)
  written.append(write_text(package_out / MANIFEST_NAME, dump_json(renamed.dump())))
  written.extend(rewrite_flow_documents(package_out, renamed_types))

  for node, result in converted.items():
    written.extend(_write_chaincode(target / CHAINCODE_DIR / node, node, result, renamed, config))

  return written


def _write_node_files(package_out: Path, file: Path, result: ConversionResult, suffix: str) -> List[Path]:
  """Replaces a node's ``.js``/``.html`` pair with its renamed counterpart."""
  written = []
  pairs: List[Tuple[Path, Optional[str]]] = [
    (file, result.node_code),
    (file.with_suffix(".html"), result.markup),
  ]
  for relative, text in pairs:
    if text is None:
      continue
    original = package_out / relative
    written.append(write_text(package_out / suffixed_path(relative, suffix), text))
    if original.exists():
      original.unlink()
  return written


def _write_chaincode(
  directory: Path,
  node: str,
  result: ConversionResult,
  manifest: PackageManifest,
  config: RuntimeConfig,
) -> List[Path]:
  """Writes ``src/<node>.ts``, ``dist/index.js`` and ``package.json`` of one chaincode."""
  tree = parse_source(result.code, dialect="typescript", format=False)
  written = persist(
    tree,
    directory / "src" / f"{node}.ts",
    emit=config.emit_javascript,
    emit_path=directory / CHAINCODE_ENTRY,
  )
  written.append(write_text(directory / MANIFEST_NAME, dump_json(chaincode_manifest(manifest))))
  return written


def _write_traces(json_trace_path: Optional[Path], results: Dict[str, ConversionResult]) -> None:
  if not json_trace_path:
    return
  try:
    json_trace_path.parent.mkdir(parents=True, exist_ok=True)
    with open(json_trace_path, "wt", encoding="utf-8") as f:
      json.dump({node: res.trace_events for node, res in results.items()}, f, indent=2)
    log_info(f"Trace saved to [path]{escape(str(json_trace_path))}[/path]")
  except OSError as e:
    log_error(f"Failed to write trace: {escape(str(e))}")


def _print_batch_summary(results: Dict[str, ConversionResult]) -> None:
  """
  Renders a summary table of conversion results to the console.

  Args:
      results: Dictionary mapping node names to conversion results.
  """
  total = len(results)
  successes = sum(1 for r in results.values() if r.success)
  failures = total - successes

  if failures == 0:
    log_success(f"Batch Complete: {successes}/{total} nodes converted.")
    return

  table = Table(title="Conversion Report")
  table.add_column("Node", style="cyan")
  table.add_column("Status", justify="center")
  table.add_column("Error", style="magenta")
  table.add_column("Issues", style="red")

  for node, res in results.items():
    if res.success:
      continue
    issues = "; ".join(res.errors) if res.errors else "Unknown Error"
    table.add_row(node, "❌ Failed", res.error_type or "", escape(issues))

  console.print(table)
  console.print(f"\n[bold]Summary:[/bold] {successes} Converted, {failures} Failed.")
