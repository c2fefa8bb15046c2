#!/usr/bin/env python3
"""Run an ingestion cycle outside Celery.

Usage:
    python scripts/run_ingestion.py                      # one cycle, all sources
    python scripts/run_ingestion.py --sources wfp unhcr  # one cycle, selected sources
    python scripts/run_ingestion.py --list               # registered sources
    python scripts/run_ingestion.py --schedule           # in-process scheduler (06:00/18:00 UTC)
"""

import argparse
import logging
import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

import unjobs.connectors  # noqa: F401
from unjobs.connectors.registry import list_sources
from unjobs.schemas.cleanup import CycleSummary
from unjobs.services.orchestrator import Orchestrator
from unjobs.services.scheduler import Scheduler

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


def print_summary(summary: CycleSummary) -> None:
    print("\n=== Ingestion cycle ===")
    print(f"  Duration:  {summary.duration_seconds}s")
    print(f"  Processed: {summary.total_processed}")
    print(f"  Inserted:  {summary.total_inserted}")
    print(f"  Updated:   {summary.total_updated}")
    print(f"  Errors:    {summary.total_errors}")
    print(f"  Succeeded: {', '.join(summary.succeeded) or '-'}")
    for failed in summary.failed:
        print(f"  FAILED {failed.name}: {failed.error}")
    if summary.cleanup:
        print(f"  Cleanup:   {summary.cleanup.total_deleted} records removed")
    if summary.cleanup_error:
        print(f"  Cleanup failed: {summary.cleanup_error}")


def run_once(sources: list[str] | None) -> CycleSummary:
    summary = Orchestrator.from_settings(sources).run()
    print_summary(summary)
    return summary


def main():
    parser = argparse.ArgumentParser(description="Ingest UN job vacancies")
    parser.add_argument("--sources", nargs="+", help="Only run these sources, in this order")
    parser.add_argument("--list", action="store_true", help="List registered sources and exit")
    parser.add_argument("--schedule", action="store_true", help="Keep running on the fixed daily schedule")
    args = parser.parse_args()

    if args.list:
        for name in list_sources():
            print(name)
        return 0

    if args.schedule:
        Scheduler(lambda: run_once(args.sources)).run_forever()
        return 0

    summary = run_once(args.sources)
    return 1 if summary.failed and not summary.succeeded else 0


if __name__ == "__main__":
    sys.exit(main())
