"""
Database models for BranchStock
"""
from branchstock.database import Base

# Import all models
from .branch import Branch
from .supplier import Supplier
from .settings import DocumentSequence
from .inventory import MovementReference, StockEntry, StockKey, StockMovement
from .adjustment import Adjustment, AdjustmentLine
from .purchase import Purchase, PurchaseItem, PurchasePayment, PurchaseStatusHistory
from .transfer import Transfer, TransferItem, TransferStatusHistory
from .stock_request import StockRequest, StockRequestItem
from .immutability import register_immutability_listeners

register_immutability_listeners()

__all__ = [
    "Base",
    "Branch",
    "Supplier",
    "DocumentSequence",
    "MovementReference",
    "StockEntry",
    "StockKey",
    "StockMovement",
    "Adjustment",
    "AdjustmentLine",
    "Purchase",
    "PurchaseItem",
    "PurchasePayment",
    "PurchaseStatusHistory",
    "Transfer",
    "TransferItem",
    "TransferStatusHistory",
    "StockRequest",
    "StockRequestItem",
]
