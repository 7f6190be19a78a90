"""
Carrier sync API routes.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from ..dependencies import get_db
from ..processor import get_sync_status, run_all_stores, run_specific_store
from ..processor.runner import (
    ERROR_CONFIGURATION,
    ERROR_UPSTREAM_REJECTED,
    ERROR_UPSTREAM_UNAVAILABLE,
)

router = APIRouter(prefix="/api/sync")

# HTTP status for each kind of store sync failure
ERROR_STATUS = {
    ERROR_CONFIGURATION: 400,
    ERROR_UPSTREAM_REJECTED: 502,
    ERROR_UPSTREAM_UNAVAILABLE: 504,
}


class StoreSyncResponse(BaseModel):
    success: bool
    store_key: str
    message: str
    carrier_count: int = 0
    inserted: int = 0
    updated: int = 0
    removed: int = 0
    skipped: bool = False


@router.get("/status")
async def sync_status():
    """Stores whose carrier sync is currently running."""
    return get_sync_status(get_db())


@router.post("/all")
async def sync_all_stores(concurrency_limit: Optional[int] = Query(None, ge=1)):
    """Sync carriers for all active stores and report per-store results."""
    db = get_db()
    summary = await run_all_stores(db, concurrency_limit=concurrency_limit)
    return summary.to_dict()


@router.post("/{store_key}", response_model=StoreSyncResponse)
async def sync_single_store(store_key: str):
    """Sync carriers for a single store."""
    db = get_db()

    try:
        result = await run_specific_store(store_key, db)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error_kind, 500),
            detail={"error_kind": result.error_kind, "message": result.error},
        )

    counts = result.result
    return StoreSyncResponse(
        success=True,
        store_key=store_key,
        message=f"Synced {counts.carrier_count} carriers for '{result.store.name}'",
        carrier_count=counts.carrier_count,
        inserted=counts.inserted,
        updated=counts.updated,
        removed=counts.removed,
        skipped=counts.skipped,
    )
