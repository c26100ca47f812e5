"""
Pydantic schemas for request/response validation
"""
from .common import CamelModel, LineKey, Pagination, dump, dump_all, ok, paginated
from .directory import BranchResponse, SupplierCreate, SupplierResponse, SupplierUpdate
from .inventory import MovementReferenceResponse, ReorderLevelsUpdate, StockEntryResponse, StockMovementResponse
from .adjustment import AdjustmentCreate, AdjustmentItem, AdjustmentResponse
from .purchase import PurchaseAction, PurchaseCreate, PurchaseResponse, PurchaseUpdate
from .transfer import TransferAction, TransferCreate, TransferResponse, TransferStats, TransferUpdate
from .stock_request import StockRequestAction, StockRequestCreate, StockRequestResponse

__all__ = [
    # Common
    "CamelModel",
    "LineKey",
    "Pagination",
    "dump",
    "dump_all",
    "ok",
    "paginated",
    # Directory
    "BranchResponse",
    "SupplierCreate",
    "SupplierResponse",
    "SupplierUpdate",
    # Stock ledger
    "MovementReferenceResponse",
    "ReorderLevelsUpdate",
    "StockEntryResponse",
    "StockMovementResponse",
    # Adjustments
    "AdjustmentCreate",
    "AdjustmentItem",
    "AdjustmentResponse",
    # Purchases
    "PurchaseAction",
    "PurchaseCreate",
    "PurchaseResponse",
    "PurchaseUpdate",
    # Transfers
    "TransferAction",
    "TransferCreate",
    "TransferResponse",
    "TransferStats",
    "TransferUpdate",
    # Stock requests
    "StockRequestAction",
    "StockRequestCreate",
    "StockRequestResponse",
]
