"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.inventory_import import router as inventory_import_router

__all__ = [
    "inventory_import_router",
]
