#!/usr/bin/env python3
"""Drop every cached job listing from Redis.

Usage:
    python scripts/clear_cache.py
    python scripts/clear_cache.py --prefix "jobs:search:"
"""

import argparse
import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

from unjobs.config import get_settings
from unjobs.services.cache import RedisInvalidator


def main():
    parser = argparse.ArgumentParser(description="Invalidate cached job listings")
    parser.add_argument("--prefix", default=get_settings().cache_prefix, help="Key prefix to drop")
    args = parser.parse_args()

    removed = RedisInvalidator().invalidate(args.prefix)
    print(f"Removed {removed} keys under '{args.prefix}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
