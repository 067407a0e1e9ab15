"""
Tests for the Contract Skeleton Factory.
"""

import pytest

from chaincodify.core.skeleton import CONTRACT_IMPORT, LOGIC_METHOD, add_import, build_skeleton, skeleton_source
from chaincodify.enums import ContractVariant


def test_single_invocation_entry_points():
  skeleton = build_skeleton(ContractVariant.SINGLE_INVOCATION)

  assert skeleton.variant == ContractVariant.SINGLE_INVOCATION
  assert set(skeleton.entry_points) == {"apply", "dispose", "getResult"}
  assert skeleton.instances is None
  assert skeleton.logic.text.startswith(f"private {LOGIC_METHOD}(msg, config = this._config) {{")


def test_multi_instance_entry_points():
  skeleton = build_skeleton(ContractVariant.MULTI_INSTANCE)

  assert set(skeleton.entry_points) == {"initInstance", "runInstance", "getResult", "dispose"}
  assert skeleton.instances is not None
  assert skeleton.instances.text.startswith("private _instances = new Map")


def test_variant_accepts_plain_values():
  skeleton = build_skeleton("multi_instance")

  assert skeleton.variant == ContractVariant.MULTI_INSTANCE


@pytest.mark.parametrize("variant", list(ContractVariant))
def test_skeleton_is_valid_typescript(variant):
  skeleton = build_skeleton(variant, class_name="LowerCase")

  skeleton.tree.check()
  assert skeleton.class_name == "LowerCase"
  assert skeleton.tree.text.startswith(CONTRACT_IMPORT + "\n")
  assert skeleton.tree.text.rstrip().endswith("export const contracts = [LowerCase];")
  assert skeleton.body.text == "{\n  }"


def test_results_are_stored_on_the_ledger():
  text = skeleton_source(ContractVariant.SINGLE_INVOCATION)

  assert "ctx.stub.putState('result'" in text
  assert "ctx.stub.getState('result')" in text


@pytest.mark.parametrize("name", ["", "1abc", "my-class", "class", "this"])
def test_invalid_class_names(name):
  with pytest.raises(ValueError):
    build_skeleton(class_name=name)


def test_add_import_deduplicates():
  skeleton = build_skeleton()

  assert add_import(skeleton, "import fs from 'fs'")
  assert not add_import(skeleton, "import fs from 'fs';")
  assert skeleton.tree.text.count("import fs from 'fs';") == 1


def test_handles_survive_imports():
  skeleton = build_skeleton()
  add_import(skeleton, "import fs from 'fs';")

  assert skeleton.body.attached
  assert skeleton.body.text == "{\n  }"
