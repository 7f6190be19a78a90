"""
SQLite database implementation.
Simple and direct - no abstraction layers.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, Iterable, List, Optional

import aiosqlite

from .models import CarrierRecord, Store, StoreStatus, SyncStatus

logger = logging.getLogger(__name__)


class SQLiteDatabase:
    """SQLite database for the store registry and carrier lists."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        # One shared connection: every statement group runs under this lock
        self._lock = asyncio.Lock()
        self._store_locks: Dict[str, asyncio.Lock] = {}

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Create database tables."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS stores (
                store_key TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                auth_header TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'active',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                last_sync_at TEXT,
                last_sync_status TEXT NOT NULL DEFAULT 'idle'
            );

            CREATE TABLE IF NOT EXISTS carriers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                carrier_id TEXT NOT NULL,
                store_key TEXT NOT NULL,
                carrier_name TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                weight_in_kg REAL,
                priority INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(carrier_id, store_key)
            );

            CREATE INDEX IF NOT EXISTS idx_carriers_store_priority ON carriers(store_key, priority);
            CREATE INDEX IF NOT EXISTS idx_stores_status ON stores(status);
        """)
        await conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # ===== Locking =====

    def store_lock(self, store_key: str) -> asyncio.Lock:
        """Lock guarding writes to one store's carrier partition."""
        lock = self._store_locks.get(store_key)
        if lock is None:
            lock = asyncio.Lock()
            self._store_locks[store_key] = lock
        return lock

    @asynccontextmanager
    async def store_locks(self, store_keys: Iterable[str]) -> AsyncIterator[None]:
        """Hold the locks of several stores, taken in sorted order."""
        locks = [self.store_lock(key) for key in sorted(set(store_keys))]
        acquired: List[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def locked_stores(self) -> List[str]:
        """Store keys whose partition lock is currently held."""
        return sorted(key for key, lock in self._store_locks.items() if lock.locked())

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a group of statements atomically; rolls back on any error."""
        async with self._lock:
            conn = await self._get_connection()
            await conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()

    # ===== Helper Methods =====

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        parsed = datetime.fromisoformat(value)
        # Remove timezone info to avoid comparison issues
        if parsed.tzinfo is not None:
            parsed = parsed.replace(tzinfo=None)
        return parsed

    def _row_to_store(self, row: aiosqlite.Row) -> Store:
        """Convert a database row to a Store model."""
        return Store(
            store_key=row["store_key"],
            name=row["name"],
            auth_header=row["auth_header"],
            status=StoreStatus(row["status"]),
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
            last_sync_at=self._parse_datetime(row["last_sync_at"]),
            last_sync_status=SyncStatus(row["last_sync_status"])
        )

    def _row_to_carrier(self, row: aiosqlite.Row) -> CarrierRecord:
        """Convert a database row to a CarrierRecord model."""
        return CarrierRecord(
            carrier_id=row["carrier_id"],
            store_key=row["store_key"],
            carrier_name=row["carrier_name"],
            status=row["status"],
            weight_in_kg=row["weight_in_kg"],
            priority=row["priority"]
        )

    # ===== Store Operations =====

    async def get_stores(self) -> List[Store]:
        async with self._lock:
            conn = await self._get_connection()
            cursor = await conn.execute("SELECT * FROM stores ORDER BY name, store_key")
            rows = await cursor.fetchall()
        return [self._row_to_store(row) for row in rows]

    async def get_store(self, store_key: str) -> Optional[Store]:
        async with self._lock:
            conn = await self._get_connection()
            cursor = await conn.execute("SELECT * FROM stores WHERE store_key = ?", (store_key,))
            row = await cursor.fetchone()
        return self._row_to_store(row) if row else None

    async def get_active_stores(self) -> List[Store]:
        async with self._lock:
            conn = await self._get_connection()
            cursor = await conn.execute(
                "SELECT * FROM stores WHERE status = ? ORDER BY name, store_key",
                (StoreStatus.ACTIVE.value,)
            )
            rows = await cursor.fetchall()
        return [self._row_to_store(row) for row in rows]

    async def create_store(self, store: Store) -> Store:
        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT INTO stores (store_key, name, auth_header, status,
                                    created_at, updated_at, last_sync_at, last_sync_status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    store.store_key,
                    store.name,
                    store.auth_header,
                    store.status.value,
                    store.created_at.isoformat(),
                    store.updated_at.isoformat(),
                    store.last_sync_at.isoformat() if store.last_sync_at else None,
                    store.last_sync_status.value
                )
            )
        return store

    async def update_store(self, store_key: str, **kwargs) -> Optional[Store]:
        if not kwargs:
            return await self.get_store(store_key)

        updates = []
        values = []

        for key, value in kwargs.items():
            if key not in ("name", "auth_header", "status"):
                continue
            updates.append(f"{key} = ?")
            values.append(value.value if isinstance(value, StoreStatus) else value)

        updates.append("updated_at = ?")
        values.append(datetime.utcnow().isoformat())
        values.append(store_key)

        async with self._transaction() as conn:
            await conn.execute(f"UPDATE stores SET {', '.join(updates)} WHERE store_key = ?", values)

        return await self.get_store(store_key)

    async def delete_store(self, store_key: str) -> bool:
        """Remove a store and its carrier partition."""
        async with self._transaction() as conn:
            await conn.execute("DELETE FROM carriers WHERE store_key = ?", (store_key,))
            cursor = await conn.execute("DELETE FROM stores WHERE store_key = ?", (store_key,))
        return cursor.rowcount > 0

    async def update_store_sync_status(
        self,
        store_key: str,
        status: SyncStatus,
        last_sync_at: Optional[datetime] = None
    ) -> None:
        now = datetime.utcnow().isoformat()
        async with self._transaction() as conn:
            if last_sync_at:
                await conn.execute(
                    "UPDATE stores SET last_sync_status = ?, last_sync_at = ?, updated_at = ? WHERE store_key = ?",
                    (status.value, last_sync_at.isoformat(), now, store_key)
                )
            else:
                await conn.execute(
                    "UPDATE stores SET last_sync_status = ?, updated_at = ? WHERE store_key = ?",
                    (status.value, now, store_key)
                )

    # ===== Carrier Operations =====

    async def get_carriers(self, store_key: str) -> List[CarrierRecord]:
        """Carriers of one store, ordered by priority."""
        async with self._lock:
            conn = await self._get_connection()
            cursor = await conn.execute(
                "SELECT * FROM carriers WHERE store_key = ? ORDER BY priority, id",
                (store_key,)
            )
            rows = await cursor.fetchall()
        return [self._row_to_carrier(row) for row in rows]

    async def get_all_carriers(self) -> List[CarrierRecord]:
        """Every carrier of every store, ordered by store then priority."""
        async with self._lock:
            conn = await self._get_connection()
            cursor = await conn.execute(
                "SELECT * FROM carriers ORDER BY store_key, priority, id"
            )
            rows = await cursor.fetchall()
        return [self._row_to_carrier(row) for row in rows]

    async def replace_store_carriers(
        self,
        store_key: str,
        carriers: Iterable[CarrierRecord]
    ) -> int:
        """
        Replace a store's whole carrier list in one transaction.

        Rows that hit the unique key are logged and skipped; the next
        sync writes them again.

        Returns:
            Number of rows written
        """
        now = datetime.utcnow().isoformat()
        written = 0

        async with self._transaction() as conn:
            cursor = await conn.execute(
                "SELECT carrier_id, created_at FROM carriers WHERE store_key = ?",
                (store_key,)
            )
            created = {row["carrier_id"]: row["created_at"] for row in await cursor.fetchall()}

            await conn.execute("DELETE FROM carriers WHERE store_key = ?", (store_key,))

            for carrier in carriers:
                try:
                    await conn.execute(
                        """
                        INSERT INTO carriers (carrier_id, store_key, carrier_name, status,
                                              weight_in_kg, priority, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            carrier.carrier_id,
                            store_key,
                            carrier.carrier_name,
                            carrier.status,
                            carrier.weight_in_kg,
                            carrier.priority,
                            created.get(carrier.carrier_id, now),
                            now
                        )
                    )
                    written += 1
                except aiosqlite.IntegrityError as e:
                    logger.warning(
                        f"[{store_key}] Skipping carrier {carrier.carrier_id}: {e}"
                    )

        return written

    async def save_carrier_priorities(
        self,
        carriers_by_store: Dict[str, List[CarrierRecord]]
    ) -> None:
        """Write priority and status for carriers of one or more stores atomically."""
        now = datetime.utcnow().isoformat()

        async with self._transaction() as conn:
            for store_key, carriers in carriers_by_store.items():
                for carrier in carriers:
                    await conn.execute(
                        """
                        UPDATE carriers SET priority = ?, status = ?, updated_at = ?
                        WHERE carrier_id = ? AND store_key = ?
                        """,
                        (carrier.priority, carrier.status, now, carrier.carrier_id, store_key)
                    )
