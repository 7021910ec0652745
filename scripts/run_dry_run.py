#!/usr/bin/env python3
"""
Dry Run - Resolve a week from the configuration bundle and export it

Usage:
  python scripts/run_dry_run.py --week 2024-06-03
  python scripts/run_dry_run.py --week 2024-06-03 --config config/radioplan_config.json --visual

Outputs to outputs/ directory.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from radioplan.dry_run import main

if __name__ == "__main__":
    main()
