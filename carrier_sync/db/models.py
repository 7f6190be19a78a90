"""
Pydantic models for database entities.
Store credentials are kept directly in SQLite.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Status of a store's last carrier sync."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class StoreStatus(str, Enum):
    """Whether a store takes part in scheduled syncs."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class CarrierStatus(str, Enum):
    """Known carrier statuses."""
    ACTIVE = "active"
    INACTIVE = "inactive"


def normalize_status(value: Optional[str]) -> str:
    """
    Map a status value to its canonical form.

    "active"/"inactive" (any case) become the canonical values,
    anything else is returned unchanged.
    """
    if value is None:
        return CarrierStatus.ACTIVE.value

    lowered = value.strip().lower()
    if lowered == CarrierStatus.INACTIVE.value:
        return CarrierStatus.INACTIVE.value
    if lowered == CarrierStatus.ACTIVE.value:
        return CarrierStatus.ACTIVE.value
    return value


class Store(BaseModel):
    """A store (Shipway account) in the tenant registry."""
    store_key: str  # account code, e.g. "STRI"
    name: str
    auth_header: str = ""  # sent verbatim as the Authorization header
    status: StoreStatus = StoreStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    last_sync_at: Optional[datetime] = None
    last_sync_status: SyncStatus = SyncStatus.IDLE

    @property
    def is_active(self) -> bool:
        return self.status == StoreStatus.ACTIVE


class CarrierRecord(BaseModel):
    """One shipping carrier offered to a store."""
    carrier_id: str
    store_key: str
    carrier_name: str
    status: str = CarrierStatus.ACTIVE.value
    weight_in_kg: Optional[float] = None
    priority: int

    @property
    def is_active(self) -> bool:
        """Anything not explicitly inactive counts as active."""
        return self.status.strip().lower() != CarrierStatus.INACTIVE.value
