"""
API routers.
"""
from .csv_import import router as csv_import_router
from .export import router as export_router
from .bulk_actions import router as bulk_actions_router

__all__ = ["csv_import_router", "export_router", "bulk_actions_router"]
