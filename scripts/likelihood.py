#!/usr/bin/env python3
"""Historical weather likelihood runner (see climate_odds.cli)."""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from climate_odds.cli import main


if __name__ == "__main__":
    sys.exit(main())
