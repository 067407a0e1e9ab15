"""
Entry point for module execution (``python -m chaincodify``).

This module delegates execution to the CLI handler in ``chaincodify.cli.__main__``.
"""

import sys
from chaincodify.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
