"""
Console and Logging Output.

All user-facing output of chaincodify goes through the standard `logging`
module, rendered by `rich`:

1.  **Logging**: a `RichHandler` on the root logger, plus a custom ``SUCCESS``
    level (25) used when a node converted cleanly.
2.  **Swappable console**: `console` is a proxy around a `rich.console.Console`.
    `set_console` redirects both printing and logging (tests capture output
    into an in-memory console this way).

Attributes:
    console (_ConsoleProxy): Stable module-level reference to the active console.
"""

import logging
from contextlib import contextmanager
from io import StringIO
from typing import Any, Iterator

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "node": "bold magenta",
  }
)


class _ConsoleProxy:
  """
  Forwards printing to a replaceable `Console` backend.

  Replacing the backend also re-binds the root logger's `RichHandler`, so
  ``logging`` output follows the console.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME)
    self._bind_logging()

  @property
  def backend(self) -> Console:
    return self._backend

  def set_backend(self, new_console: Console) -> None:
    self._backend = new_console
    self._bind_logging()

  def reset(self) -> None:
    self.set_backend(Console(theme=_THEME))

  def _bind_logging(self) -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)

    handler = RichHandler(
      console=self._backend,
      show_time=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Routes printing and logging to ``new_console``.

  Args:
      new_console (Console): The console to use globally.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Routes printing and logging back to standard output."""
  console.reset()


def get_console() -> Console:
  return console.backend


@contextmanager
def captured_output(width: int = 120) -> Iterator[StringIO]:
  """
  Temporarily sends all console and log output into a string buffer.

  Yields:
      StringIO: Buffer receiving the plain-text output.
  """
  buffer = StringIO()
  previous = console.backend
  set_console(Console(file=buffer, theme=_THEME, width=width, no_color=True))
  try:
    yield buffer
  finally:
    set_console(previous)


def log_info(msg: str) -> None:
  """
  Logs an informational message.

  Args:
      msg (str): Message text. May contain rich markup such as ``[path]``.
  """
  logging.info(f"ℹ️  {msg}", extra={"markup": True})


def log_success(msg: str) -> None:
  logging.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  logging.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  """
  Logs an error message.

  Args:
      msg (str): Message text.
  """
  logging.error(f"❌ {msg}", extra={"markup": True})
