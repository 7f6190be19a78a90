"""
Shared fixtures: a throwaway SQLite database and a fake upstream client.
"""

from typing import Any, Optional

import pytest
import pytest_asyncio

from carrier_sync.db import CarrierRecord, SQLiteDatabase, Store


class FakeShipwayClient:
    """Stands in for ShipwayClient; returns a canned payload or raises."""

    def __init__(self, payload: Any = None, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls = 0
        self.closed = False

    async def fetch_carriers(self) -> Any:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload

    async def close(self) -> None:
        self.closed = True


def carrier(store_key, carrier_id, priority, status="active", name=None, weight=None):
    return CarrierRecord(
        carrier_id=carrier_id,
        store_key=store_key,
        carrier_name=name or f"Carrier {carrier_id}",
        status=status,
        weight_in_kg=weight,
        priority=priority,
    )


@pytest.fixture
def make_carrier():
    return carrier


@pytest.fixture
def fake_client():
    return FakeShipwayClient


@pytest_asyncio.fixture
async def db(tmp_path):
    database = SQLiteDatabase(str(tmp_path / "carriers.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def seeded_db(db):
    """
    Two stores sharing a carrier id:
    STRI: A(1), B(2), C(3, inactive)
    ACME: A(1), X(2)
    """
    await db.create_store(Store(store_key="STRI", name="Striker", auth_header="Basic c3RyaQ=="))
    await db.create_store(Store(store_key="ACME", name="Acme", auth_header="Basic YWNtZQ=="))

    await db.replace_store_carriers("STRI", [
        carrier("STRI", "A", 1, name="Delhivery (2kg)", weight=2.0),
        carrier("STRI", "B", 2, name="Bluedart"),
        carrier("STRI", "C", 3, status="inactive", name="Ekart"),
    ])
    await db.replace_store_carriers("ACME", [
        carrier("ACME", "A", 1, name="Delhivery (2kg)", weight=2.0),
        carrier("ACME", "X", 2, name="Xpressbees (0.5 kg)", weight=0.5),
    ])
    return db
