"""
Shipway API module.
"""

from carrier_sync.shipway.client import (
    ShipwayClient,
    ShipwayClientError,
    ShipwayConfigError,
    ShipwaySemanticError,
    ShipwayAuthError,
    ShipwayForbiddenError,
    ShipwayNotFoundError,
    ShipwayTransientError,
    ShipwayTimeoutError,
    ShipwayConnectionError,
)
from carrier_sync.shipway.carriers import (
    ParsedCarrier,
    extract_carrier_data,
    fetch_store_carriers,
    parse_weight,
)

__all__ = [
    "ShipwayClient",
    "ShipwayClientError",
    "ShipwayConfigError",
    "ShipwaySemanticError",
    "ShipwayAuthError",
    "ShipwayForbiddenError",
    "ShipwayNotFoundError",
    "ShipwayTransientError",
    "ShipwayTimeoutError",
    "ShipwayConnectionError",
    "ParsedCarrier",
    "extract_carrier_data",
    "fetch_store_carriers",
    "parse_weight",
]
