"""
Manual priority operations on one store's carriers.
"""

import logging
from dataclasses import dataclass
from typing import List

from ..db import CarrierRecord, SQLiteDatabase
from .reconcile import (
    CarrierNotFoundError,
    move_carrier_in_list,
    priorities_changed,
    renumber_priorities,
)

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    """Result of a single-step reorder."""
    store_key: str
    carrier_id: str
    direction: str
    moved: bool
    priority: int


async def list_carriers(db: SQLiteDatabase, store_key: str) -> List[CarrierRecord]:
    """Carriers of a store, active first, each group by priority."""
    carriers = await db.get_carriers(store_key)
    return sorted(carriers, key=lambda c: (not c.is_active, c.priority))


async def move_carrier(
    db: SQLiteDatabase,
    store_key: str,
    carrier_id: str,
    direction: str,
) -> MoveResult:
    """
    Move an active carrier one step up or down within its store.

    A carrier already at the top (or bottom) stays where it is.

    Raises:
        CarrierNotFoundError: Store has no such carrier
        CarrierDataError: Carrier is inactive
        ValueError: direction is not "up" or "down"
    """
    async with db.store_lock(store_key):
        carriers = await db.get_carriers(store_key)
        if not carriers:
            raise CarrierNotFoundError(store_key, carrier_id)

        reordered, moved = move_carrier_in_list(store_key, carriers, carrier_id, direction)

        changed = priorities_changed(carriers, reordered)
        if changed:
            await db.save_carrier_priorities({store_key: reordered})

    priority = next(c.priority for c in reordered if c.carrier_id == carrier_id)

    if moved:
        logger.info(f"[{store_key}] Moved carrier {carrier_id} {direction} to priority {priority}")
    else:
        logger.info(f"[{store_key}] Carrier {carrier_id} already at the boundary, not moved")

    return MoveResult(
        store_key=store_key,
        carrier_id=carrier_id,
        direction=direction,
        moved=moved,
        priority=priority,
    )


async def normalize_priorities(db: SQLiteDatabase, store_key: str) -> int:
    """
    Renumber a store's active carriers to 1..K.

    Returns:
        Number of carriers whose priority changed
    """
    async with db.store_lock(store_key):
        carriers = await db.get_carriers(store_key)
        renumbered = renumber_priorities(carriers)

        changed = priorities_changed(carriers, renumbered)
        if changed:
            await db.save_carrier_priorities({store_key: renumbered})

    logger.info(f"[{store_key}] Normalized priorities, {len(changed)} carriers changed")
    return len(changed)
