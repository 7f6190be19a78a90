#!/usr/bin/env python3
"""
Cron job script to run scheduled carrier sync for all active stores.
Add to crontab: 0 */6 * * * cd /path/to/app && /path/to/venv/bin/python scripts/run_sync.py

This runs the sync as a standalone script, not through the web server.
Pass account codes to sync only those stores.
"""

import argparse
import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from carrier_sync.config import settings
from carrier_sync.db import SQLiteDatabase
from carrier_sync.processor import run_all_stores, run_specific_store

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Sync carriers from Shipway")
    parser.add_argument("store_keys", nargs="*", help="Account codes to sync (default: all active)")
    parser.add_argument("--concurrency", type=int, default=None, help="Max stores synced at once")
    return parser.parse_args()


async def main():
    args = parse_args()
    logger.info("Starting scheduled carrier sync...")

    db = SQLiteDatabase(settings.database_path)
    await db.initialize()

    try:
        if args.store_keys:
            results = []
            for store_key in args.store_keys:
                try:
                    results.append(await run_specific_store(store_key, db))
                except ValueError as e:
                    logger.error(f"  {store_key}: {e}")
                    sys.exit(2)
            failed = [r for r in results if not r.success]
        else:
            summary = await run_all_stores(db, concurrency_limit=args.concurrency)
            results = summary.results
            failed = [r for r in results if not r.success]

        logger.info(f"Sync completed: {len(results) - len(failed)} successful, {len(failed)} failed")

        if failed:
            for r in failed:
                logger.error(f"  {r.store.name} ({r.store.store_key}): {r.error}")
            sys.exit(1)

    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
