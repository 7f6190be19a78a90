"""
Runner for executing carrier sync across multiple stores.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional

from ..config import settings
from ..db import SQLiteDatabase, Store
from ..shipway import (
    ShipwayClient,
    ShipwayConfigError,
    ShipwaySemanticError,
    ShipwayTransientError,
)
from .sync import StoreSyncResult, SyncError, sync_store

logger = logging.getLogger(__name__)


# Builds the upstream client for a store; the default uses the store's credentials
ClientFactory = Callable[[Store], ShipwayClient]

# Error kinds reported per store
ERROR_CONFIGURATION = "configuration"
ERROR_UPSTREAM_REJECTED = "upstream_rejected"
ERROR_UPSTREAM_UNAVAILABLE = "upstream_unavailable"
ERROR_INTERNAL = "internal"


def classify_error(error: BaseException) -> str:
    """Map a sync failure to the kind of problem an operator has to fix."""
    cause = error.__cause__ if isinstance(error, SyncError) and error.__cause__ else error
    if isinstance(cause, ShipwayConfigError):
        return ERROR_CONFIGURATION
    if isinstance(cause, ShipwaySemanticError):
        return ERROR_UPSTREAM_REJECTED
    if isinstance(cause, ShipwayTransientError):
        return ERROR_UPSTREAM_UNAVAILABLE
    return ERROR_INTERNAL


@dataclass
class SyncResult:
    """Result of a store sync."""
    store: Store
    result: Optional[StoreSyncResult]
    error: Optional[str]
    error_kind: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class StoreFailure:
    """A store whose sync failed."""
    store_key: str
    store_name: str
    error: str
    error_kind: str


@dataclass
class SyncSummary:
    """Aggregated outcome of a multi-store sync."""
    results: List[SyncResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> List[StoreFailure]:
        return [
            StoreFailure(
                store_key=r.store.store_key,
                store_name=r.store.name,
                error=r.error,
                error_kind=r.error_kind or ERROR_INTERNAL,
            )
            for r in self.results if not r.success
        ]

    @property
    def total_carriers(self) -> int:
        return sum(r.result.carrier_count for r in self.results if r.success and r.result)

    @property
    def outcome(self) -> str:
        """One of success, partial or failed."""
        if self.succeeded == self.total:
            return "success"
        if self.succeeded == 0:
            return "failed"
        return "partial"

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": [asdict(f) for f in self.failed],
            "total_carriers": self.total_carriers,
            "duration": round(self.duration, 2),
        }


async def run_single_store(
    store: Store,
    db: SQLiteDatabase,
    client_factory: Optional[ClientFactory] = None
) -> SyncResult:
    """Run sync for a single store with error handling."""
    client = None
    try:
        if client_factory is not None:
            client = client_factory(store)
        result = await sync_store(store, db, client=client)
        return SyncResult(store=store, result=result, error=None)
    except SyncError as e:
        logger.error(f"Sync failed for '{store.name}' ({store.store_key}): {e}")
        return SyncResult(store=store, result=None, error=str(e), error_kind=classify_error(e))
    except ShipwayConfigError as e:
        logger.error(f"Cannot sync '{store.name}' ({store.store_key}): {e}")
        return SyncResult(store=store, result=None, error=str(e), error_kind=ERROR_CONFIGURATION)
    except Exception as e:
        logger.exception(f"Unexpected error syncing '{store.name}' ({store.store_key})")
        return SyncResult(
            store=store,
            result=None,
            error=f"Unexpected error: {e}",
            error_kind=classify_error(e),
        )
    finally:
        if client is not None:
            await client.close()


async def run_all_stores(
    db: SQLiteDatabase,
    concurrency_limit: Optional[int] = None,
    client_factory: Optional[ClientFactory] = None
) -> SyncSummary:
    """
    Run carrier sync for all active stores.

    Stores run concurrently; with a concurrency limit at most that many
    syncs are in flight at once. A failing store never affects the others.
    """
    if concurrency_limit is None:
        concurrency_limit = settings.sync_concurrency_limit

    stores = await db.get_active_stores()

    if not stores:
        logger.info("No active stores to sync")
        return SyncSummary()

    started = time.monotonic()

    if concurrency_limit and len(stores) > concurrency_limit:
        logger.info(
            f"Starting carrier sync for {len(stores)} stores "
            f"({concurrency_limit} at a time)"
        )
        semaphore = asyncio.Semaphore(concurrency_limit)

        async def sync_with_semaphore(store: Store) -> SyncResult:
            async with semaphore:
                return await run_single_store(store, db, client_factory)

        tasks = [sync_with_semaphore(store) for store in stores]
    else:
        logger.info(f"Starting carrier sync for {len(stores)} stores in parallel")
        tasks = [run_single_store(store, db, client_factory) for store in stores]

    results = await asyncio.gather(*tasks)
    summary = SyncSummary(results=list(results), duration=time.monotonic() - started)

    logger.info(
        f"Sync completed in {summary.duration:.2f}s: {summary.succeeded} successful, "
        f"{len(summary.failed)} failed, {summary.total_carriers} carriers"
    )
    for failure in summary.failed:
        logger.warning(f"  {failure.store_name} ({failure.store_key}): {failure.error}")

    return summary


async def run_specific_store(
    store_key: str,
    db: SQLiteDatabase,
    client_factory: Optional[ClientFactory] = None
) -> SyncResult:
    """Run sync for a specific store by account code."""
    store = await db.get_store(store_key)

    if not store:
        raise ValueError(f"Store not found: {store_key}")

    if not store.is_active:
        raise ValueError(f"Store is not active: {store_key}")

    return await run_single_store(store, db, client_factory)


def get_sync_status(db: SQLiteDatabase) -> dict:
    """Stores whose carrier list is being written right now."""
    running = db.locked_stores()
    return {
        "is_running": bool(running),
        "running_stores": running,
    }
