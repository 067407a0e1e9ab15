"""
chaincodify Package.

Converts Node-RED nodes into Hyperledger Fabric contracts: the node's input
logic becomes the body of a contract class, and the node itself becomes a
renamed proxy that forwards messages to the ledger.

Usage
-----

Simple String Conversion
^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    import chaincodify
    contract = chaincodify.convert(open("lower-case.js").read())
    print(contract)
    # import { Contract, type Context } from 'fabric-contract-api';
    # class Chaincode extends Contract { ... }

Advanced Usage (Engine)
^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    from chaincodify import ConversionEngine, RuntimeConfig

    config = RuntimeConfig(suffix="chain", variant="single_invocation")
    engine = ConversionEngine(config=config)
    res = engine.run(code, markup=html, package_name="my-nodes_chain")

    if res.success:
        print(res.code, res.markup)
    else:
        print(f"{res.error_type}: {res.errors}")
"""

from typing import Optional

from chaincodify.config import RuntimeConfig
from chaincodify.core.conversion_result import ConversionResult
from chaincodify.core.engine import ConversionEngine
from chaincodify.enums import ContractVariant

__version__ = "0.0.1"


def convert(
  code: str,
  variant: ContractVariant = ContractVariant.MULTI_INSTANCE,
  class_name: str = "Chaincode",
  config: Optional[RuntimeConfig] = None,
) -> str:
  """
  Converts the source of a node module into contract source.

  This is a high-level convenience wrapper around the `ConversionEngine`. For
  whole packages use the ``chaincodify convert`` command.

  Args:
      code (str): The ``.js`` source of the node.
      variant (ContractVariant): Contract lifecycle to generate.
      class_name (str): Name of the contract class.
      config (RuntimeConfig, optional): Full configuration; overrides
          ``variant`` and ``class_name`` when given.

  Returns:
      str: TypeScript source of the contract.

  Raises:
      ValueError: If the conversion fails.
  """
  config = config or RuntimeConfig(variant=variant, class_name=class_name, emit_javascript=False)
  result = ConversionEngine(config=config).run(code)
  if not result.success:
    error_msg = "\n".join(result.errors)
    raise ValueError(f"Conversion failed:\n{error_msg}")
  return result.code


__all__ = [
  "ContractVariant",
  "ConversionEngine",
  "ConversionResult",
  "RuntimeConfig",
  "convert",
  "__version__",
]
