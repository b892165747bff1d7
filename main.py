#!/usr/bin/env python3
"""LC-3 VM launcher.

Run LC-3 program images without installing the package.

Usage:
    python main.py program.obj
    python main.py 2048.obj --max-cycles 1000000
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from lc3vm.cli import main


if __name__ == "__main__":
    sys.exit(main())
