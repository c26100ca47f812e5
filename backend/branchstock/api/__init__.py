"""
API routes for BranchStock
"""
from .adjustments import router as adjustments_router
from .directory import router as directory_router
from .movements import router as movements_router
from .purchases import router as purchases_router
from .requests import router as requests_router
from .stock import router as stock_router
from .transfers import router as transfers_router

__all__ = [
    "adjustments_router",
    "directory_router",
    "movements_router",
    "purchases_router",
    "requests_router",
    "stock_router",
    "transfers_router",
]
