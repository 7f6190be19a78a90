"""
Carrier list, priority and CSV routes.
"""

from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from ..dependencies import get_db
from ..processor import (
    CarrierDataError,
    CarrierNotFoundError,
    CSVValidationError,
    DIRECTIONS,
    csv_format_info,
    export_csv,
    import_csv,
    list_carriers,
    move_carrier,
    normalize_priorities,
)

router = APIRouter(prefix="/api/carriers")


@router.get("")
async def get_carriers(store_key: Optional[str] = Query(None)):
    """List carriers, for one store or all of them."""
    db = get_db()

    if store_key:
        carriers = await list_carriers(db, store_key)
    else:
        carriers = await db.get_all_carriers()

    return {
        "carriers": [c.model_dump() for c in carriers],
        "carrier_count": len(carriers),
    }


@router.get("/download")
async def download_carriers():
    """Download all carriers as a CSV file."""
    db = get_db()

    try:
        content = await export_csv(db)
    except CarrierDataError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="carriers.csv"'},
    )


@router.get("/format")
async def get_csv_format():
    """Expected CSV format and validation rules for priority uploads."""
    return await csv_format_info(get_db())


@router.post("/upload-priority")
async def upload_priority(csv_file: UploadFile = File(...)):
    """Update carrier priorities from an uploaded CSV."""
    db = get_db()

    raw = await csv_file.read()
    if not raw:
        raise HTTPException(
            status_code=400,
            detail="File appears to be empty. Please upload a valid CSV file."
        )

    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")

    try:
        result = await import_csv(db, content)
    except CSVValidationError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "errors": e.errors})

    return {
        "success": True,
        "message": (
            f"Successfully updated priorities for {result.updated_count} carriers. "
            f"All {result.total_carriers} carriers validated."
        ),
        "updated_count": result.updated_count,
        "stores_processed": result.stores_processed,
        "total_carriers": result.total_carriers,
    }


@router.post("/{store_key}/normalize")
async def normalize_store_priorities(store_key: str):
    """Renumber a store's active carriers to 1..N."""
    changed = await normalize_priorities(get_db(), store_key)
    return {"success": True, "store_key": store_key, "changed": changed}


@router.post("/{store_key}/{carrier_id}/move")
async def move_store_carrier(
    store_key: str,
    carrier_id: str,
    direction: str = Query(...)
):
    """Move a carrier one step up or down in its store's priority order."""
    if direction not in DIRECTIONS:
        raise HTTPException(status_code=400, detail=f"Invalid direction: {direction}")

    try:
        result = await move_carrier(get_db(), store_key, carrier_id, direction)
    except CarrierNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CarrierDataError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "moved": result.moved,
        "carrier_id": result.carrier_id,
        "priority": result.priority,
    }
