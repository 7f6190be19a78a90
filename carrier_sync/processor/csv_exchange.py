"""
CSV export and bulk priority upload for carriers.

Uploads are all-or-nothing: every store in the file is validated against
the stored carriers before anything is written, and one bad store rejects
the whole file.
"""

import csv
import io
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..db import CarrierRecord, CarrierStatus, SQLiteDatabase, Store, normalize_status
from .reconcile import CarrierDataError, priorities_changed, renumber_priorities

logger = logging.getLogger(__name__)


EXPORT_COLUMNS = [
    "store_name",
    "account_code",
    "carrier_id",
    "carrier_name",
    "status",
    "weight_in_kg",
    "priority",
]
REQUIRED_COLUMNS = ["carrier_id", "carrier_name", "status", "weight_in_kg", "priority"]
STORE_COLUMN = "account_code"

VALIDATION_RULES = [
    "Columns carrier_id, carrier_name, status, weight_in_kg, priority and account_code must be present",
    "All existing carrier IDs of every store in the file must be included",
    "No duplicate carrier IDs within a store",
    "Priority values must be unique among the active carriers of a store",
    "Priority values must be positive integers no greater than 2147483647",
    "Carrier IDs must match exactly with existing data for the store",
]

_POSITIVE_INT = re.compile(r"^\d+$")

# Upper bound for uploaded priorities
MAX_PRIORITY = 2**31 - 1


class CSVValidationError(Exception):
    """Uploaded CSV was rejected; nothing was written."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("CSV validation failed: " + "; ".join(errors))


@dataclass
class PriorityRow:
    """One data row of an uploaded priority CSV."""
    row_number: int
    account_code: str
    carrier_id: str
    priority_raw: str
    priority: Optional[int]
    status: str


@dataclass
class CSVImportResult:
    """Result of an accepted priority upload."""
    updated_count: int
    stores_processed: List[str]
    total_carriers: int


def format_weight(weight: Optional[float]) -> str:
    """Render a weight the way it appears in carrier names, e.g. 2.0 -> "2"."""
    if weight is None:
        return ""
    return f"{weight:g}"


def _parse_priority(value: str) -> Optional[int]:
    if not _POSITIVE_INT.match(value):
        return None
    priority = int(value)
    return priority if 1 <= priority <= MAX_PRIORITY else None


def _row_is_active(row: PriorityRow, stored_status: Dict[str, str]) -> bool:
    """Whether the carrier is active once the row is applied."""
    status = normalize_status(row.status) if row.status else stored_status.get(row.carrier_id, "")
    return status.strip().lower() != CarrierStatus.INACTIVE.value


# ===== Export =====

def build_carriers_csv(stores: Iterable[Store], carriers: Iterable[CarrierRecord]) -> str:
    """
    Render carriers as CSV.

    Stores are listed in registry order; within a store active carriers
    come first, then inactive ones, each group by ascending priority.
    Data fields are always quoted.
    """
    names = {store.store_key: store.name for store in stores}
    order = {key: index for index, key in enumerate(names)}

    by_store: Dict[str, List[CarrierRecord]] = defaultdict(list)
    for carrier in carriers:
        by_store[carrier.store_key].append(carrier)

    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(EXPORT_COLUMNS)
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

    for store_key in sorted(by_store, key=lambda key: (order.get(key, len(order)), key)):
        ordered = sorted(by_store[store_key], key=lambda c: (not c.is_active, c.priority))
        for carrier in ordered:
            writer.writerow([
                names.get(store_key, ""),
                store_key,
                carrier.carrier_id,
                carrier.carrier_name,
                carrier.status,
                format_weight(carrier.weight_in_kg),
                carrier.priority,
            ])

    return buffer.getvalue()


async def export_csv(db: SQLiteDatabase) -> str:
    """Export every store's carriers as CSV."""
    stores = await db.get_stores()
    carriers = await db.get_all_carriers()

    if not carriers:
        raise CarrierDataError("No carrier data found")

    logger.info(f"Exporting {len(carriers)} carriers to CSV")
    return build_carriers_csv(stores, carriers)


# ===== Import =====

def parse_priority_csv(content: str) -> List[PriorityRow]:
    """
    Parse an uploaded priority CSV.

    Raises:
        CSVValidationError: Unreadable file, missing columns or no data rows
    """
    normalized = content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    reader = csv.reader(io.StringIO(normalized))

    try:
        header = None
        rows = []
        for record in reader:
            if not any(field.strip() for field in record):
                continue
            if header is None:
                header = [column.strip() for column in record]
                continue
            rows.append((reader.line_num, record))
    except csv.Error as e:
        raise CSVValidationError([f"Could not parse CSV at line {reader.line_num}: {e}"]) from e

    if header is None:
        raise CSVValidationError(["CSV file must contain header and at least one data row"])

    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise CSVValidationError([
            f"CSV is missing required columns: {', '.join(missing)}. "
            f"Expected columns: {', '.join(REQUIRED_COLUMNS)}"
        ])

    if STORE_COLUMN not in header:
        raise CSVValidationError([
            f"CSV is missing the {STORE_COLUMN} column; every row must name its store"
        ])

    extra = [column for column in header if column not in EXPORT_COLUMNS]
    if extra:
        logger.warning(f"CSV contains extra columns, ignoring: {', '.join(extra)}")

    if not rows:
        raise CSVValidationError(["CSV file must contain header and at least one data row"])

    index = {column: header.index(column) for column in header}

    def value(record: List[str], column: str) -> str:
        position = index[column]
        return record[position].strip() if position < len(record) else ""

    parsed = []
    for line_number, record in rows:
        priority_raw = value(record, "priority")
        parsed.append(PriorityRow(
            row_number=line_number,
            account_code=value(record, STORE_COLUMN),
            carrier_id=value(record, "carrier_id"),
            priority_raw=priority_raw,
            priority=_parse_priority(priority_raw),
            status=value(record, "status"),
        ))

    return parsed


def validate_priority_rows(
    rows: List[PriorityRow],
    existing_by_store: Dict[str, List[CarrierRecord]],
) -> Dict[str, List[PriorityRow]]:
    """
    Check uploaded rows against the stored carriers of each store.

    Every problem in every store is collected before raising, so one
    upload attempt reports everything that needs fixing.

    Returns:
        Rows grouped by account code, in file order

    Raises:
        CSVValidationError: Listing every offending row and store
    """
    errors: List[str] = []
    groups: Dict[str, List[PriorityRow]] = {}

    for row in rows:
        if not row.account_code:
            errors.append(f"Row {row.row_number}: account_code is empty")
            continue

        groups.setdefault(row.account_code, []).append(row)

        if not row.carrier_id:
            errors.append(
                f"Row {row.row_number}: carrier_id is missing for store {row.account_code}"
            )
        if row.priority is None:
            errors.append(
                f"Row {row.row_number}: invalid priority \"{row.priority_raw}\" for carrier "
                f"\"{row.carrier_id}\" in store {row.account_code}, must be a positive integer "
                f"no greater than {MAX_PRIORITY}"
            )

    for store_key, group in groups.items():
        existing = existing_by_store.get(store_key, [])
        existing_ids = [c.carrier_id for c in existing]
        stored_status = {c.carrier_id: c.status for c in existing}
        known = set(existing_ids)

        if not known:
            errors.append(f"Store {store_key}: no carriers exist for this account code")
            continue

        seen: Dict[str, int] = {}
        for row in group:
            if not row.carrier_id:
                continue
            if row.carrier_id in seen:
                errors.append(
                    f"Row {row.row_number}: duplicate carrier ID \"{row.carrier_id}\" for store "
                    f"{store_key} (already in row {seen[row.carrier_id]})"
                )
                continue
            seen[row.carrier_id] = row.row_number
            if row.carrier_id not in known:
                errors.append(
                    f"Row {row.row_number}: carrier ID \"{row.carrier_id}\" does not exist "
                    f"for store {store_key}"
                )

        missing = [carrier_id for carrier_id in existing_ids if carrier_id not in seen]
        if missing:
            errors.append(
                f"Store {store_key}: CSV is missing carrier IDs {', '.join(missing)}. "
                f"All existing carriers must be included in the CSV."
            )

        # Inactive carriers keep their priority and may share it with an active one
        rows_by_priority: Dict[int, List[int]] = defaultdict(list)
        for row in group:
            if row.priority is not None and _row_is_active(row, stored_status):
                rows_by_priority[row.priority].append(row.row_number)
        for priority, row_numbers in sorted(rows_by_priority.items()):
            if len(row_numbers) > 1:
                errors.append(
                    f"Store {store_key}: priority {priority} is used more than once "
                    f"(rows {', '.join(str(n) for n in row_numbers)})"
                )

    if errors:
        raise CSVValidationError(errors)

    return groups


def apply_priority_rows(
    existing: List[CarrierRecord],
    rows: List[PriorityRow],
) -> List[CarrierRecord]:
    """Apply validated rows to a store's carriers and renumber them."""
    rows_by_id = {row.carrier_id: row for row in rows}

    updated = []
    for carrier in existing:
        row = rows_by_id[carrier.carrier_id]
        changes = {"priority": row.priority}
        if row.status:
            changes["status"] = normalize_status(row.status)
        updated.append(carrier.model_copy(update=changes))

    return renumber_priorities(updated)


async def import_csv(db: SQLiteDatabase, csv_text: str) -> CSVImportResult:
    """
    Apply an uploaded priority CSV.

    All stores named in the file are locked, validated and then written in
    a single transaction.

    Raises:
        CSVValidationError: Nothing was written
    """
    rows = parse_priority_csv(csv_text)
    store_keys = sorted({row.account_code for row in rows if row.account_code})

    async with db.store_locks(store_keys):
        existing_by_store = {key: await db.get_carriers(key) for key in store_keys}

        groups = validate_priority_rows(rows, existing_by_store)

        final: Dict[str, List[CarrierRecord]] = {}
        updated_count = 0
        for store_key, group in groups.items():
            final[store_key] = apply_priority_rows(existing_by_store[store_key], group)
            updated_count += len(priorities_changed(existing_by_store[store_key], final[store_key]))

        await db.save_carrier_priorities(final)

    total = sum(len(carriers) for carriers in final.values())
    logger.info(
        f"Priority upload applied: {updated_count} carriers updated across "
        f"{len(final)} stores ({total} validated)"
    )

    return CSVImportResult(
        updated_count=updated_count,
        stores_processed=list(final),
        total_carriers=total,
    )


async def csv_format_info(db: SQLiteDatabase) -> dict:
    """Expected upload format, with a few current rows as an example."""
    stores = await db.get_stores()
    carriers = await db.get_all_carriers()
    names = {store.store_key: store.name for store in stores}

    sample = [
        {
            "store_name": names.get(c.store_key, ""),
            "account_code": c.store_key,
            "carrier_id": c.carrier_id,
            "carrier_name": c.carrier_name,
            "status": c.status,
            "weight_in_kg": format_weight(c.weight_in_kg),
            "priority": c.priority,
        }
        for c in carriers[:3]
    ]

    return {
        "expected_columns": EXPORT_COLUMNS,
        "required_columns": REQUIRED_COLUMNS + [STORE_COLUMN],
        "total_carriers": len(carriers),
        "sample_data": sample,
        "validation_rules": VALIDATION_RULES,
    }
