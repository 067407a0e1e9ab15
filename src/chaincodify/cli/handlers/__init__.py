"""
Command handlers of the chaincodify CLI.
"""

from chaincodify.cli.handlers.convert import handle_convert

__all__ = ["handle_convert"]
