"""
Script to export one table to Avro files

Example:
    python scripts/run_export.py --table orders --output /data/exports/orders
"""

import sys
import os

# Add current directory to path to allow imports from core, exporter, etc.
sys.path.append(os.getcwd())

from exporter.cli import main


if __name__ == "__main__":
    sys.exit(main())
