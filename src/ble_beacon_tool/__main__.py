"""Entry point for running the tool as a module.

Usage:
    python -m ble_beacon_tool advertise --major 100 --minor 1
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
