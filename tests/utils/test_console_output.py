"""
Tests for Centralized Logging Utility and Injection Mechanics.

Verifies:
1. Singleton Proxy correctness.
2. Injection capabilities (`set_console`, `captured_output`).
3. Standard logging wrappers, including the SUCCESS level.
"""

import logging

from rich.console import Console

from chaincodify.utils.console import (
  SUCCESS_LEVEL_NUM,
  captured_output,
  console,
  get_console,
  log_error,
  log_info,
  log_success,
  log_warning,
  reset_console,
  set_console,
)


def test_console_singleton_proxy():
  """
  Verify `console` acts as a proxy to a real Rich console.
  """
  assert callable(console.print)
  # Forwarded attribute
  assert hasattr(console, "export_text")
  assert isinstance(get_console(), Console)


def test_custom_console_injection():
  """
  Scenario: A recording console is injected.
  Expectation: Log wrappers write into it.
  """
  capture_console = Console(record=True, file=None)
  set_console(capture_console)

  log_info("Captured Log")

  output = capture_console.export_text()
  assert "Captured Log" in output
  assert "ℹ️" in output


def test_reset_functionality():
  temp = Console()
  set_console(temp)
  assert get_console() is temp

  reset_console()

  assert get_console() is not temp


def test_only_one_rich_handler_is_bound():
  set_console(Console())
  set_console(Console())

  rich_handlers = [h for h in logging.getLogger().handlers if type(h).__name__ == "RichHandler"]
  assert len(rich_handlers) == 1


def test_captured_output_restores_previous_console():
  before = get_console()

  with captured_output() as buffer:
    log_warning("careful")
    log_error("broken")
    console.print("plain")

  text = buffer.getvalue()
  assert "careful" in text
  assert "broken" in text
  assert "plain" in text
  assert get_console() is before


def test_success_level():
  assert logging.getLevelName(SUCCESS_LEVEL_NUM) == "SUCCESS"

  with captured_output() as buffer:
    log_success("converted [node]lower-case[/node]")

  text = buffer.getvalue()
  assert "SUCCESS" in text
  assert "converted lower-case" in text
