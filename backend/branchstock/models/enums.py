"""
Closed vocabularies shared by models, schemas and services.

Columns store the plain string value; these enums are the only place the
allowed values are spelled out.
"""
import enum


class BranchRole(str, enum.Enum):
    HEAD_OFFICE = "head_office"
    SUB_BRANCH = "sub_branch"


class BranchType(str, enum.Enum):
    STORE = "store"
    WAREHOUSE = "warehouse"
    OUTLET = "outlet"
    FRANCHISE = "franchise"


class MovementType(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    INITIAL = "initial"
    RECOUNT = "recount"


# Sign convention of the ledger: +1 must be positive, -1 must be negative,
# 0 means either sign is accepted.
MOVEMENT_SIGN = {
    MovementType.PURCHASE: 1,
    MovementType.RETURN: 1,
    MovementType.TRANSFER_IN: 1,
    MovementType.INITIAL: 1,
    MovementType.SALE: -1,
    MovementType.TRANSFER_OUT: -1,
    MovementType.ADJUSTMENT: 0,
    MovementType.RECOUNT: 0,
}


class ReferenceKind(str, enum.Enum):
    """Origin document of a movement."""

    PURCHASE = "purchase"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    SALE = "sale"
    RETURN = "return"
    RECOUNT = "recount"
    INITIAL = "initial"


class AdjustmentMode(str, enum.Enum):
    ADD = "add"
    REMOVE = "remove"
    SET = "set"


class FinanceStatus(str, enum.Enum):
    NOT_REQUESTED = "not_requested"
    POSTED = "posted"
    FAILED = "failed"


class PurchaseStatus(str, enum.Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentTerms(str, enum.Enum):
    CASH = "cash"
    CREDIT = "credit"


class TransferStatus(str, enum.Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    PARTIAL_RECEIVED = "partial_received"
    CANCELLED = "cancelled"


class TransferType(str, enum.Enum):
    HEAD_TO_SUB = "head_to_sub"
    SUB_TO_SUB = "sub_to_sub"
    SUB_TO_HEAD = "sub_to_head"


class DocumentType(str, enum.Enum):
    DELIVERY_CHALLAN = "delivery_challan"
    DISPATCH_NOTE = "dispatch_note"
    DELIVERY_SLIP = "delivery_slip"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FULFILLED = "fulfilled"
    PARTIAL_FULFILLED = "partial_fulfilled"
    CANCELLED = "cancelled"


class RequestPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class SupplierType(str, enum.Enum):
    LOCAL = "local"
    IMPORT = "import"
    MANUFACTURER = "manufacturer"
    WHOLESALER = "wholesaler"
