"""
Typed exceptions for the inventory engine.

Every error carries a machine-readable ``code``, the HTTP status the API
renders it with, and structured ``details``. Callers catch by type, never by
message text.

    BranchStockError
    +-- ValidationError
    +-- AuthenticationError
    +-- ForbiddenError
    +-- NotFoundError
    +-- InsufficientStockError
    +-- InvalidStateTransitionError
    +-- ConflictError
    +-- ImmutableRecordError
    +-- FinanceError
"""
from typing import Any, Dict, Optional


class BranchStockError(Exception):
    """Base class for all domain errors."""

    code: str = "BRANCHSTOCK_ERROR"
    http_status: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(BranchStockError):
    """Missing or malformed input. Caller-fixable; never retried."""

    code = "VALIDATION_ERROR"
    http_status = 400


class AuthenticationError(BranchStockError):
    """No valid actor identity on the request."""

    code = "UNAUTHENTICATED"
    http_status = 401


class ForbiddenError(BranchStockError):
    """Role or branch mismatch for the requested action."""

    code = "FORBIDDEN"
    http_status = 403


class NotFoundError(BranchStockError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found",
            {"resource": resource, "id": str(identifier)},
        )
        self.resource = resource
        self.identifier = identifier


class InsufficientStockError(BranchStockError):
    """The operation would drive a branch quantity below zero."""

    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(
        self,
        product_id: Any,
        branch_id: Any,
        available: int,
        requested: int,
        variant_sku: Optional[str] = None,
    ):
        label = f"{product_id}" + (f" ({variant_sku})" if variant_sku else "")
        super().__init__(
            f"Insufficient stock for product {label} at branch {branch_id}: "
            f"available {available}, requested {requested}",
            {
                "product_id": str(product_id),
                "variant_sku": variant_sku,
                "branch_id": str(branch_id),
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.variant_sku = variant_sku
        self.branch_id = branch_id
        self.available = available
        self.requested = requested


class InvalidStateTransitionError(BranchStockError):
    """The action is not legal from the document's current status."""

    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(self, document: str, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} {document} in status '{current_status}'",
            {"document": document, "status": current_status, "action": action},
        )
        self.document = document
        self.current_status = current_status
        self.action = action


class ConflictError(BranchStockError):
    """Concurrent modification detected. Safe to retry the whole action once."""

    code = "CONFLICT"
    http_status = 409


class ImmutableRecordError(BranchStockError):
    """Attempt to update or delete an append-only row."""

    code = "IMMUTABLE_RECORD"
    http_status = 500


class FinanceError(BranchStockError):
    """Finance collaborator failed. Reported as a warning, never fatal."""

    code = "FINANCE_UNAVAILABLE"
    http_status = 502
