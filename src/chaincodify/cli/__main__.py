"""
Main Entry Point for chaincodify CLI.

This module handles argument parsing and dispatches to the command handlers
defined in `chaincodify.cli.handlers`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from chaincodify import __version__
from chaincodify.cli.handlers import handle_convert
from chaincodify.enums import ContractVariant


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Parses arguments via argparse and calls the appropriate handler function.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="chaincodify: Node-RED nodes to Hyperledger Fabric contracts")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: CONVERT ---
  cmd_conv = subparsers.add_parser("convert", help="Convert the nodes of an extracted npm package")
  cmd_conv.add_argument("path", type=Path, help="Package directory (holding package.json)")
  cmd_conv.add_argument("--out", type=Path, default=Path("output"), help="Output directory (default: ./output)")
  cmd_conv.add_argument(
    "--variant",
    choices=[v.value for v in ContractVariant],
    default=None,
    help="Contract lifecycle to generate (default: from toml, else multi_instance)",
  )
  cmd_conv.add_argument("--suffix", default=None, help="Suffix for renamed nodes and files (default: from toml)")
  cmd_conv.add_argument("--category", default=None, help="Palette category of converted nodes (default: the suffix)")
  cmd_conv.add_argument(
    "--keep-going",
    action="store_true",
    default=None,
    help="Skip nodes that fail to convert instead of aborting the batch",
  )
  cmd_conv.add_argument(
    "--no-emit",
    dest="emit_javascript",
    action="store_false",
    default=None,
    help="Do not write the CommonJS lowering (dist/index.js)",
  )
  cmd_conv.add_argument(
    "--no-proxy",
    dest="proxy_nodes",
    action="store_false",
    default=None,
    help="Keep the original node bodies instead of the ledger proxy",
  )
  cmd_conv.add_argument(
    "--json-trace", type=Path, default=None, help="Dump the execution traces of every node to a JSON file."
  )

  args = parser.parse_args(argv)

  if args.command == "convert":
    return handle_convert(
      args.path,
      args.out,
      variant=args.variant,
      suffix=args.suffix,
      category=args.category,
      keep_going=args.keep_going,
      emit_javascript=args.emit_javascript,
      proxy_nodes=args.proxy_nodes,
      json_trace_path=args.json_trace,
    )

  parser.print_help()
  return 1


if __name__ == "__main__":
  sys.exit(main())
