#!/usr/bin/env python
"""
Run Sync Script
Command-line entry point for one incremental Dockmaster sync run.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dockmaster_sync.utils.helpers import parse_datetime
from dockmaster_sync.utils.logger import setup_logging, get_logger
from dockmaster_sync.sync_engine import run_incremental_sync


def main():
    """Main entry point for the sync script."""
    parser = argparse.ArgumentParser(description='Run Dockmaster work order incremental sync')
    parser.add_argument(
        '--since',
        help='Window start (ISO 8601) overriding the watermark, e.g. 2026-01-01T00:00:00Z'
    )
    parser.add_argument(
        '--all-pages',
        action='store_true',
        help='Read every upstream page instead of the configured cap'
    )
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    setup_logging(level='DEBUG' if args.verbose else None)
    logger = get_logger(__name__)

    since = None
    if args.since:
        since = parse_datetime(args.since)
        if since is None:
            print(f"Error: invalid --since value: {args.since}")
            sys.exit(2)

    logger.info(f"Starting sync: since={args.since}, all_pages={args.all_pages}")
    result = run_incremental_sync(since=since, all_pages=args.all_pages)

    print(f"\n{'='*50}")
    print("Sync Run Complete")
    print(f"{'='*50}")
    print(f"Success: {result.success}")
    print(f"Lookback From: {result.lookback_from.isoformat() if result.lookback_from else '-'}")
    print(f"Work Orders Updated: {result.work_orders_updated}")
    print(f"Operation Sets Replaced: {result.operations_replaced}")
    print(f"Time Entry Groups Applied: {result.time_entries_processed}")
    print(f"Pages: {result.pages_fetched}/{result.pages_available}")
    print(f"Duration: {result.duration_seconds:.2f}s")

    if result.error:
        print(f"Error: {result.error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
