"""
Package Manifests and Flow Documents.

Converting a node package renames every node it ships. The rename has to be
reflected outside the node sources as well:

1.  **Node files**: ``dir/name.js`` becomes ``dir/name-<suffix>.js`` (and the
    same for ``.html``).
2.  **Package manifest**: the package becomes ``<name>_<suffix>`` and its
    ``node-red.nodes`` entries point at the renamed files.
3.  **Chaincode manifest**: every node gets a Fabric chaincode package
    (``main`` is ``dist/index.js``, started with ``fabric-chaincode-node``).
4.  **Flow documents**: example flows shipped with the package reference node
    types, which are renamed through the batch rename table.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chaincodify.core.errors import IncompatibleFormatError

MANIFEST_NAME = "package.json"
CHAINCODE_MAIN = "dist/index.js"
CHAINCODE_START = "set -x && fabric-chaincode-node start"
CHAINCODE_DEPENDENCIES = {
  "fabric-contract-api": "^2.5.0",
  "fabric-shim": "^2.5.0",
}
_SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git"})


class NodeRedSection(BaseModel):
  """The ``node-red`` section of a package manifest."""

  model_config = ConfigDict(extra="allow")

  nodes: Dict[str, str] = Field(description="Node set name -> path of its .js file, relative to the package.")


class PackageManifest(BaseModel):
  """
  A node package ``package.json``.

  Unknown keys are kept so the manifest can be written back unchanged apart
  from the renamed fields.
  """

  model_config = ConfigDict(extra="allow", populate_by_name=True)

  name: str = Field(description="npm package name.")
  version: Optional[str] = Field(None, description="npm package version.")
  node_red: NodeRedSection = Field(alias="node-red", description="Node-RED registration section.")

  def dump(self) -> Dict[str, Any]:
    return self.model_dump(by_alias=True, exclude_none=True)


def suffixed_name(name: str, suffix: str) -> str:
  """Node type after conversion: ``name-suffix``."""
  return f"{name}-{suffix}"


def suffixed_package_name(name: str, suffix: str) -> str:
  """Package name after conversion: ``name_suffix``."""
  return f"{name}_{suffix}"


def suffixed_path(path: Union[str, Path], suffix: str) -> Path:
  """
  Appends ``-suffix`` to a file name, keeping directory and extension.

  Example:
      >>> suffixed_path("nodes/lower.js", "chain").as_posix()
      'nodes/lower-chain.js'
  """
  path = Path(path)
  return path.with_name(f"{path.stem}-{suffix}{path.suffix}")


def output_directory_name(package_name: str) -> str:
  """Directory name of a package in the output tree (``@scope/pkg`` -> ``scope-pkg``)."""
  return package_name.replace("@", "").replace("/", "-")


def load_manifest(path: Union[str, Path]) -> PackageManifest:
  """
  Reads a package manifest.

  Raises:
      IncompatibleFormatError: If the file is not JSON or declares no
          ``node-red.nodes`` section.
  """
  path = Path(path)
  try:
    with open(path, "rt", encoding="utf-8") as f:
      data = json.load(f)
    return PackageManifest.model_validate(data)
  except (json.JSONDecodeError, ValidationError) as e:
    raise IncompatibleFormatError(f"No node-red nodes declared: {e}", module=path.name) from e


def rename_manifest(manifest: PackageManifest, suffix: str, renamed: Dict[str, str]) -> PackageManifest:
  """
  Applies a batch of node renames to a manifest.

  Args:
      manifest: Original manifest.
      suffix: Rename suffix.
      renamed: Node set name -> new node set name, for the nodes that converted.

  Returns:
      PackageManifest: A renamed copy. Nodes missing from ``renamed`` keep
      their entries.
  """
  nodes: Dict[str, str] = {}
  for name, file in manifest.node_red.nodes.items():
    if name in renamed:
      nodes[renamed[name]] = suffixed_path(file, suffix).as_posix()
    else:
      nodes[name] = file
  section = manifest.node_red.model_copy(update={"nodes": nodes})
  return manifest.model_copy(update={"name": suffixed_package_name(manifest.name, suffix), "node_red": section})


def chaincode_manifest(manifest: PackageManifest) -> Dict[str, Any]:
  """
  Builds the ``package.json`` of one node's chaincode.

  The chaincode inherits name, version and dependencies from the (renamed)
  node package, so modules the node logic imports stay resolvable.
  """
  data = manifest.dump()
  data.pop("node-red", None)
  data["main"] = CHAINCODE_MAIN
  scripts = dict(data.get("scripts") or {})
  scripts["start"] = CHAINCODE_START
  data["scripts"] = scripts
  dependencies = dict(data.get("dependencies") or {})
  dependencies.update(CHAINCODE_DEPENDENCIES)
  data["dependencies"] = dependencies
  return data


def dump_json(data: Any) -> str:
  return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def rename_flow_types(flow: Any, renames: Dict[str, str]) -> int:
  """
  Renames the ``type`` of every node object of a flow document in place.

  Args:
      flow: Parsed flow document (a list of node objects).
      renames: Original node type -> new node type.

  Returns:
      int: Number of node objects renamed. Documents that are not flows are
      left untouched.
  """
  if not isinstance(flow, list):
    return 0
  count = 0
  for item in flow:
    if isinstance(item, dict) and item.get("type") in renames:
      item["type"] = renames[item["type"]]
      count += 1
  return count


def flow_documents(package_dir: Path) -> List[Path]:
  """JSON files of a package other than its manifest, outside ``node_modules``."""
  found = []
  for path in sorted(package_dir.rglob("*.json")):
    relative = path.relative_to(package_dir)
    if relative.as_posix() == MANIFEST_NAME or _SKIPPED_DIRECTORIES.intersection(relative.parts):
      continue
    found.append(path)
  return found


def rewrite_flow_documents(package_dir: Path, renames: Dict[str, str]) -> List[Path]:
  """
  Renames node types in the flow documents of a package.

  Args:
      package_dir: Package root (mutated).
      renames: Batch rename table.

  Returns:
      List[Path]: Documents that changed.
  """
  changed = []
  if not renames:
    return changed
  for path in flow_documents(package_dir):
    with open(path, "rt", encoding="utf-8") as f:
      try:
        data = json.load(f)
      except json.JSONDecodeError:
        continue
    if rename_flow_types(data, renames):
      with open(path, "wt", encoding="utf-8") as f:
        f.write(dump_json(data))
      changed.append(path)
  return changed
