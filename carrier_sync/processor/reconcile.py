"""
Business rules for carrier priorities.

Pure functions: nothing here touches the database or the network.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from ..db import CarrierRecord
from ..shipway import ParsedCarrier

logger = logging.getLogger(__name__)


DIRECTION_UP = "up"
DIRECTION_DOWN = "down"
DIRECTIONS = (DIRECTION_UP, DIRECTION_DOWN)


class CarrierNotFoundError(Exception):
    """Carrier does not exist for the store."""

    def __init__(self, store_key: str, carrier_id: str):
        super().__init__(f"Carrier {carrier_id} not found for store {store_key}")
        self.store_key = store_key
        self.carrier_id = carrier_id


class CarrierDataError(Exception):
    """Carrier data cannot support the requested operation."""
    pass


@dataclass
class ReconcileResult:
    """Outcome of merging an upstream listing into a store's carrier list."""

    carriers: List[CarrierRecord]
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


def renumber_priorities(carriers: Iterable[CarrierRecord]) -> List[CarrierRecord]:
    """
    Close gaps and duplicates in the active carriers' priorities.

    Carriers are ordered by their current priority (ties keep input order)
    and every active carrier gets its 1-based rank among active carriers.
    Inactive carriers keep their stored priority.

    Returns:
        New records, in priority order
    """
    ordered = sorted(carriers, key=lambda c: c.priority)

    renumbered = []
    rank = 0
    for carrier in ordered:
        if carrier.is_active:
            rank += 1
            carrier = carrier.model_copy(update={"priority": rank})
        renumbered.append(carrier)

    return renumbered


def reconcile_carriers(
    store_key: str,
    existing: Sequence[CarrierRecord],
    upstream: Sequence[ParsedCarrier],
) -> ReconcileResult:
    """
    Merge a fresh upstream listing into a store's persisted carriers.

    Rules:
    1. Carriers still listed upstream keep their priority; name, status
       and weight are refreshed from upstream.
    2. Carriers new upstream are appended after the highest existing
       priority, in upstream order.
    3. Carriers no longer listed upstream are dropped.
    4. The result is renumbered so active priorities are 1..K.

    Args:
        store_key: Store the carriers belong to
        existing: Carriers currently stored for the store
        upstream: Carriers just fetched for the store

    Returns:
        ReconcileResult with the final list and what changed
    """
    existing_by_id: Dict[str, CarrierRecord] = {c.carrier_id: c for c in existing}

    upstream_by_id: Dict[str, ParsedCarrier] = {}
    for candidate in upstream:
        if candidate.carrier_id in upstream_by_id:
            logger.warning(
                f"[{store_key}] Duplicate carrier {candidate.carrier_id} in upstream listing, "
                f"keeping the first entry"
            )
            continue
        upstream_by_id[candidate.carrier_id] = candidate

    result = ReconcileResult(carriers=[])
    merged: List[CarrierRecord] = []

    # Surviving carriers: keep priority, refresh descriptive fields
    for carrier in existing:
        candidate = upstream_by_id.get(carrier.carrier_id)
        if candidate is None:
            result.removed.append(carrier.carrier_id)
            continue

        merged.append(carrier.model_copy(update={
            "status": candidate.status,
            "carrier_name": candidate.carrier_name,
            "weight_in_kg": candidate.weight_in_kg,
        }))
        result.updated.append(carrier.carrier_id)

    # New carriers: append after everything already ranked
    next_priority = max([c.priority for c in existing] + [0]) + 1
    for candidate in upstream_by_id.values():
        if candidate.carrier_id in existing_by_id:
            continue

        merged.append(CarrierRecord(
            carrier_id=candidate.carrier_id,
            store_key=store_key,
            carrier_name=candidate.carrier_name,
            status=candidate.status,
            weight_in_kg=candidate.weight_in_kg,
            priority=next_priority,
        ))
        result.added.append(candidate.carrier_id)
        next_priority += 1

    result.carriers = renumber_priorities(merged)
    return result


def move_carrier_in_list(
    store_key: str,
    carriers: Sequence[CarrierRecord],
    carrier_id: str,
    direction: str,
) -> Tuple[List[CarrierRecord], bool]:
    """
    Swap an active carrier with its neighbour in priority order.

    The list is renumbered first, so the swap always happens on a dense
    sequence. Moving past either end is a no-op.

    Raises:
        ValueError: Unknown direction
        CarrierNotFoundError: carrier_id not in the list
        CarrierDataError: carrier is inactive

    Returns:
        (renumbered list, whether the carrier moved)
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Invalid direction '{direction}', expected 'up' or 'down'")

    ordered = renumber_priorities(carriers)

    if not any(c.carrier_id == carrier_id for c in ordered):
        raise CarrierNotFoundError(store_key, carrier_id)

    active = [c for c in ordered if c.is_active]
    position = next((i for i, c in enumerate(active) if c.carrier_id == carrier_id), None)
    if position is None:
        raise CarrierDataError(f"Carrier {carrier_id} is inactive and cannot be reordered")

    neighbour = position - 1 if direction == DIRECTION_UP else position + 1
    if neighbour < 0 or neighbour >= len(active):
        return ordered, False

    first, second = active[position], active[neighbour]
    swapped = {
        first.carrier_id: second.priority,
        second.carrier_id: first.priority,
    }

    moved = [
        c.model_copy(update={"priority": swapped[c.carrier_id]}) if c.carrier_id in swapped else c
        for c in ordered
    ]
    return sorted(moved, key=lambda c: c.priority), True


def priorities_changed(
    before: Iterable[CarrierRecord],
    after: Iterable[CarrierRecord],
) -> List[str]:
    """Carrier ids whose priority or status differs between two versions of a list."""
    previous = {c.carrier_id: (c.priority, c.status) for c in before}
    return [
        c.carrier_id for c in after
        if previous.get(c.carrier_id) != (c.priority, c.status)
    ]
