"""
Carrier sync processor for a single store.
"""

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..config import settings
from ..db import SQLiteDatabase, Store, SyncStatus
from ..shipway import ShipwayClient, fetch_store_carriers
from .reconcile import reconcile_carriers

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Error during sync process."""

    def __init__(self, store_key: str, message: str):
        super().__init__(message)
        self.store_key = store_key


@dataclass
class StoreSyncResult:
    """Counts for one store's carrier sync."""
    store_key: str
    carrier_count: int
    inserted: int
    updated: int
    removed: int
    skipped: bool = False


async def sync_store(
    store: Store,
    db: SQLiteDatabase,
    client: Optional[ShipwayClient] = None,
    skip_empty_upstream: Optional[bool] = None,
) -> StoreSyncResult:
    """
    Run the complete carrier sync for a single store.

    Fetches the store's carrier listing, merges it with the stored list and
    replaces the store's carriers in one transaction. Holds the store's
    lock for the whole run so two syncs of one store never interleave.

    Args:
        store: Store to sync
        db: Database
        client: Upstream client; built from the store's credentials when omitted
        skip_empty_upstream: Leave the stored list alone when upstream returns
            no carriers. Defaults to settings.skip_empty_upstream.

    Raises:
        SyncError: Wrapping whatever made the sync fail
    """
    if skip_empty_upstream is None:
        skip_empty_upstream = settings.skip_empty_upstream

    store_key = store.store_key
    owns_client = client is None

    async with db.store_lock(store_key):
        logger.info(f"[{store_key}] Starting carrier sync for '{store.name}'")
        await db.update_store_sync_status(store_key, SyncStatus.RUNNING)

        try:
            if client is None:
                client = ShipwayClient(store.auth_header, store_key=store_key)

            # Step 1: Fetch upstream listing
            upstream = await fetch_store_carriers(client)
            logger.info(f"[{store_key}] Upstream lists {len(upstream)} carriers")

            # Step 2: Load what we have
            existing = await db.get_carriers(store_key)

            now = datetime.now(timezone.utc)

            if not upstream and skip_empty_upstream:
                logger.warning(
                    f"[{store_key}] Upstream returned no carriers, keeping "
                    f"{len(existing)} stored carriers"
                )
                await db.update_store_sync_status(store_key, SyncStatus.SUCCESS, last_sync_at=now)
                return StoreSyncResult(
                    store_key=store_key,
                    carrier_count=len(existing),
                    inserted=0,
                    updated=0,
                    removed=0,
                    skipped=True,
                )

            if not upstream and existing:
                logger.warning(
                    f"[{store_key}] Upstream returned no carriers, dropping all "
                    f"{len(existing)} stored carriers"
                )

            # Step 3: Merge
            result = reconcile_carriers(store_key, existing, upstream)

            # Step 4: Replace the store's partition
            written = await db.replace_store_carriers(store_key, result.carriers)

            logger.info(
                f"[{store_key}] Carrier sync completed: {len(result.added)} added, "
                f"{len(result.updated)} updated, {len(result.removed)} removed, "
                f"{written} total"
            )
            if result.carriers:
                logger.debug(
                    f"[{store_key}] Final priorities: "
                    + ", ".join(f"{c.carrier_id}:{c.priority}" for c in result.carriers)
                )

            await db.update_store_sync_status(store_key, SyncStatus.SUCCESS, last_sync_at=now)

            return StoreSyncResult(
                store_key=store_key,
                carrier_count=written,
                inserted=len(result.added),
                updated=len(result.updated),
                removed=len(result.removed),
            )

        except Exception as e:
            logger.error(f"[{store_key}] Carrier sync failed: {e}")
            logger.debug(traceback.format_exc())

            await db.update_store_sync_status(store_key, SyncStatus.FAILED)
            raise SyncError(store_key, f"Sync failed for store {store_key}: {e}") from e

        finally:
            if owns_client and client:
                await client.close()
