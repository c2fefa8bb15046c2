#!/usr/bin/env python3
"""Remove expired and duplicate job records.

Prints the records expiring in the next week, then runs both cleanup passes.

Usage:
    python scripts/cleanup_jobs.py --dry-run   # report only
    python scripts/cleanup_jobs.py             # delete
"""

import argparse
import logging
import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

from unjobs.services.cache import RedisInvalidator
from unjobs.services.cleanup import CleanupEngine
from unjobs.services.run_tracker import RunStatusTracker

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")


def main():
    parser = argparse.ArgumentParser(description="Clean up expired and duplicate job records")
    parser.add_argument("--dry-run", action="store_true", help="Don't delete anything")
    parser.add_argument("--days-ahead", type=int, default=7, help="Window for the expiring-soon report")
    args = parser.parse_args()

    engine = CleanupEngine(invalidator=RedisInvalidator(), tracker=RunStatusTracker())

    report = engine.expiring_soon(args.days_ahead)
    print(f"\n=== Expiring in the next {report.days_ahead} days: {report.total_expiring} ===")
    for source, breakdown in report.by_source.items():
        print(f"  {source}: {breakdown.expired_count} (first {breakdown.oldest_expired}, last {breakdown.newest_expired})")

    stats = engine.run(dry_run=args.dry_run)

    print(f"\n=== Cleanup ({'DRY RUN' if stats.dry_run else 'LIVE'}) ===")
    print(f"  Expired:    {stats.total_expired} found, {stats.deleted_expired} deleted")
    for source, breakdown in stats.expired_by_source.items():
        print(f"    {source}: {breakdown.expired_count}")
    print(f"  Duplicates: {stats.total_duplicates} found, {stats.deleted_duplicates} deleted")
    for source, breakdown in stats.duplicates_by_source.items():
        print(f"    {source}: {breakdown.duplicate_count} in {breakdown.duplicate_groups} groups")
    print(f"  Duration:   {stats.duration_seconds}s")
    for error in stats.errors:
        print(f"  ERROR {error}")

    return 1 if stats.error_count else 0


if __name__ == "__main__":
    sys.exit(main())
