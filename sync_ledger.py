#!/usr/bin/env python3
"""Monthly ledger for pix wallet and credit-card feeds.

This is the main entry point script for strato-ledger.
It wraps the package CLI for convenient execution.

Usage:
    python sync_ledger.py periods --set 2024-01
    python sync_ledger.py refresh
    python sync_ledger.py summary

For full documentation and options:
    python sync_ledger.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from strato_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
