"""
Routes package.
"""

from .carriers import router as carriers_router
from .stores import router as stores_router
from .sync import router as sync_router

__all__ = [
    "carriers_router",
    "stores_router",
    "sync_router",
]
