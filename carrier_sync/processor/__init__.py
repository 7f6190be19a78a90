"""
Processor package for carrier sync and priority operations.
"""

from .reconcile import (
    reconcile_carriers,
    renumber_priorities,
    move_carrier_in_list,
    ReconcileResult,
    CarrierNotFoundError,
    CarrierDataError,
    DIRECTIONS,
)
from .sync import sync_store, SyncError, StoreSyncResult
from .runner import (
    run_all_stores,
    run_single_store,
    run_specific_store,
    get_sync_status,
    SyncResult,
    SyncSummary,
    StoreFailure,
)
from .priorities import list_carriers, move_carrier, normalize_priorities, MoveResult
from .csv_exchange import (
    export_csv,
    import_csv,
    csv_format_info,
    CSVValidationError,
    CSVImportResult,
)

__all__ = [
    "reconcile_carriers",
    "renumber_priorities",
    "move_carrier_in_list",
    "ReconcileResult",
    "CarrierNotFoundError",
    "CarrierDataError",
    "DIRECTIONS",
    "sync_store",
    "SyncError",
    "StoreSyncResult",
    "run_all_stores",
    "run_single_store",
    "run_specific_store",
    "get_sync_status",
    "SyncResult",
    "SyncSummary",
    "StoreFailure",
    "list_carriers",
    "move_carrier",
    "normalize_priorities",
    "MoveResult",
    "export_csv",
    "import_csv",
    "csv_format_info",
    "CSVValidationError",
    "CSVImportResult",
]
