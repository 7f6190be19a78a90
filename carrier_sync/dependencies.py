"""
Shared carrier database handle for the API routes.

The lifespan hook in main.py opens it on startup and closes it on shutdown;
routes fetch it with get_db(). Tests swap in their own database by setting
_db directly.
"""

import logging
from typing import Optional

from .config import settings
from .db import SQLiteDatabase

logger = logging.getLogger(__name__)


_db: Optional[SQLiteDatabase] = None


async def init_dependencies() -> None:
    """Open the carrier database and create its tables."""
    global _db

    logger.info(f"Opening carrier database at {settings.database_path}")
    _db = SQLiteDatabase(settings.database_path)
    await _db.initialize()


async def close_dependencies() -> None:
    """Close the carrier database, if open."""
    global _db
    if _db:
        await _db.close()
        _db = None


def get_db() -> SQLiteDatabase:
    """Carrier database shared by all routes and their store locks."""
    if _db is None:
        raise RuntimeError("Carrier database not initialized; is the app lifespan running?")
    return _db
