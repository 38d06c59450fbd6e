#!/usr/bin/env python3
"""
Archive Comparison Launcher

Runs the re-index audit from a source checkout without installing it.

Usage:
    ./scripts/compare_archive.py compare --archive ECCO
    ./scripts/compare_archive.py compare --archive ECCO --mode text --log-root ./logs
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from reindex_audit.cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
