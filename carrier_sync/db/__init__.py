"""
Database package - SQLite only.
"""

from .models import (
    CarrierRecord, CarrierStatus, Store, StoreStatus, SyncStatus,
    normalize_status
)
from .sqlite import SQLiteDatabase

__all__ = [
    "SQLiteDatabase",
    "CarrierRecord",
    "CarrierStatus",
    "Store",
    "StoreStatus",
    "SyncStatus",
    "normalize_status",
]
