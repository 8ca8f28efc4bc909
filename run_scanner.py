#!/usr/bin/env python3
"""
Cross-DEX scanner and asset validator CLI.

Usage:
    python3 run_scanner.py --config configs/engine.example.yaml scan --once
    python3 run_scanner.py --config configs/engine.example.yaml validate 8453 0x...
"""

import sys

from pool_arbitrage.cli import main

if __name__ == "__main__":
    sys.exit(main())
