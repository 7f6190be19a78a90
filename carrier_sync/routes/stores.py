"""
Store registry routes.
"""

from typing import Optional

import aiosqlite
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..dependencies import get_db
from ..db import Store, StoreStatus

router = APIRouter(prefix="/api/stores")


class StoreCreate(BaseModel):
    store_key: str
    name: str
    auth_header: str
    status: StoreStatus = StoreStatus.ACTIVE


class StoreUpdate(BaseModel):
    name: Optional[str] = None
    auth_header: Optional[str] = None
    status: Optional[StoreStatus] = None


def _store_view(store: Store) -> dict:
    # Credentials never leave the service
    data = store.model_dump(exclude={"auth_header"})
    data["has_credentials"] = bool(store.auth_header.strip())
    return data


@router.get("")
async def list_stores():
    """List all stores."""
    stores = await get_db().get_stores()
    return {"stores": [_store_view(s) for s in stores]}


@router.post("", status_code=201)
async def create_store(payload: StoreCreate):
    """Register a store."""
    store_key = payload.store_key.strip().upper()
    name = payload.name.strip()
    if not store_key or not name:
        raise HTTPException(status_code=400, detail="store_key and name are required")

    store = Store(
        store_key=store_key,
        name=name,
        auth_header=payload.auth_header.strip(),
        status=payload.status,
    )

    try:
        await get_db().create_store(store)
    except aiosqlite.IntegrityError:
        raise HTTPException(status_code=409, detail=f"Store already exists: {store_key}")

    return _store_view(store)


@router.patch("/{store_key}")
async def update_store(store_key: str, payload: StoreUpdate):
    """Rename a store, rotate its credentials or pause it."""
    db = get_db()

    if not await db.get_store(store_key):
        raise HTTPException(status_code=404, detail="Store not found")

    changes = payload.model_dump(exclude_none=True)
    if "auth_header" in changes:
        changes["auth_header"] = changes["auth_header"].strip()

    store = await db.update_store(store_key, **changes)
    return _store_view(store)


@router.delete("/{store_key}")
async def delete_store(store_key: str):
    """Delete a store along with its carriers."""
    db = get_db()

    async with db.store_lock(store_key):
        deleted = await db.delete_store(store_key)

    if not deleted:
        raise HTTPException(status_code=404, detail="Store not found")
    return {"success": True, "store_key": store_key}
