#!/usr/bin/env python3
"""
Chat Printer launcher.

Equivalent to the `chat-printer` console script; see `chat_printer.cli`.
"""

import sys
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from chat_printer.cli import main

if __name__ == "__main__":
    sys.exit(main())
