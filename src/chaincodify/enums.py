"""
Enumerations for chaincodify.

Defines the contract variants the skeleton factory can build and the batch
failure policies.
"""

from enum import Enum


class ContractVariant(str, Enum):
  """
  Lifecycle contract of the generated class.

  Selected once per run. The extractor, transformer and resolver do not depend
  on it; only the skeleton factory dispatches on it.
  """

  SINGLE_INVOCATION = "single_invocation"  # apply(ctx, msg, config) / dispose()
  MULTI_INSTANCE = "multi_instance"  # initInstance / runInstance / getResult


class FailurePolicy(str, Enum):
  """What the batch driver does when one node fails to convert."""

  ABORT = "abort"
  SKIP = "skip"
