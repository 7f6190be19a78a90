"""
Normalization of Shipway carrier listings.

The carrier endpoint has answered with several shapes over time; everything
is flattened into ParsedCarrier entries here.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional

from ..db import CarrierStatus
from .client import ShipwayClient

logger = logging.getLogger(__name__)


# Keys that may hold the carrier array, checked in order
LIST_KEYS = ("carriers", "data", "result")
UNKNOWN_CARRIER_NAME = "Unknown Carrier"
WEIGHT_PATTERN = re.compile(r"\((\d+(?:\.\d+)?)\s*kg\)", re.IGNORECASE)


@dataclass
class ParsedCarrier:
    """Carrier candidate extracted from an upstream listing."""

    carrier_id: str
    carrier_name: str
    status: str
    weight_in_kg: Optional[float]
    priority: int  # position in the response, provisional only


def parse_weight(name: str) -> Optional[float]:
    """
    Extract the weight class from a carrier name, e.g. "Express (0.5 kg)" -> 0.5.

    Returns None when the name carries no weight.
    """
    match = WEIGHT_PATTERN.search(name or "")
    if match is None:
        return None
    return float(match.group(1))


def _carrier_array(payload: Any) -> List[Any]:
    """Find the list of carriers inside a response payload."""
    if isinstance(payload, list):
        return payload

    if not isinstance(payload, dict):
        return []

    # An empty list under a known key means the account has no carriers
    for key in LIST_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return value
        if value:
            return [value]

    message = payload.get("message")
    if isinstance(message, list):
        return message

    # Flat object, treat it as a single carrier
    return [payload]


def _first(entry: dict, *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value:
            return value
    return None


def extract_carrier_data(payload: Any) -> List[ParsedCarrier]:
    """
    Extract carrier candidates from a Shipway response.

    Args:
        payload: Decoded JSON body (list, or dict wrapping the list)

    Returns:
        Carriers in response order with 1-based provisional priorities
    """
    carriers: List[ParsedCarrier] = []

    for index, entry in enumerate(_carrier_array(payload), start=1):
        if not isinstance(entry, dict):
            entry = {}

        carrier_id = _first(entry, "id", "carrier_id", "carrierId")
        carrier_name = _first(entry, "name", "carrier_name", "carrierName")

        carrier_id = str(carrier_id) if carrier_id else f"CARRIER_{index}"
        carrier_name = str(carrier_name) if carrier_name else UNKNOWN_CARRIER_NAME

        status = CarrierStatus.ACTIVE.value
        raw_status = entry.get("status")
        if isinstance(raw_status, str) and raw_status.strip().lower() == CarrierStatus.INACTIVE.value:
            status = CarrierStatus.INACTIVE.value

        carriers.append(ParsedCarrier(
            carrier_id=carrier_id,
            carrier_name=carrier_name,
            status=status,
            weight_in_kg=parse_weight(carrier_name),
            priority=index,
        ))

    logger.debug(f"Extracted {len(carriers)} carriers from upstream response")
    return carriers


async def fetch_store_carriers(client: ShipwayClient) -> List[ParsedCarrier]:
    """Fetch and normalize one store's carrier listing."""
    payload = await client.fetch_carriers()
    return extract_carrier_data(payload)
