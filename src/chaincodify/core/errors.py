"""
Conversion Error Taxonomy.

Every failure that is fatal for the conversion of one module derives from
`ConversionError`. The batch driver catches this base class at the module
boundary, logs the module identity and applies the configured failure policy.

1.  **ParseError**: The source text is not syntactically valid.
2.  **IncompatibleFormatError**: The export/body shape does not follow the node convention.
3.  **MissingHandlerError**: No ``input`` handler was registered by the node.
4.  **RegistrationNotFoundError**: No ``RED.nodes.registerType`` call exists in the module or markup.

`BindingResolutionError` is raised by the scope analyzer for malformed constructs
and is always recovered inside the alias resolver.
"""

from typing import Optional


class ConversionError(ValueError):
  """
  Base class for module-level conversion failures.

  Attributes:
      module (Optional[str]): Name of the node being converted, when known.
  """

  def __init__(self, message: str, module: Optional[str] = None) -> None:
    super().__init__(message)
    self.message = message
    self.module = module

  def __str__(self) -> str:
    if self.module:
      return f"[{self.module}] {self.message}"
    return self.message


class ParseError(ConversionError):
  """
  Raised when a source text cannot be parsed.

  Attributes:
      line (int): 1-based line of the first syntax error.
      column (int): 1-based column of the first syntax error.
  """

  def __init__(self, message: str, line: int = 0, column: int = 0, module: Optional[str] = None) -> None:
    super().__init__(message, module=module)
    self.line = line
    self.column = column


class IncompatibleFormatError(ConversionError):
  """Raised when the module does not follow the ``module.exports`` node convention."""


class MissingHandlerError(ConversionError):
  """Raised when a node registers no ``input`` handler."""


class RegistrationNotFoundError(ConversionError):
  """Raised when no ``RED.nodes.registerType`` call can be located."""


class BindingResolutionError(LookupError):
  """Raised when an identifier cannot be bound to a declaration."""
