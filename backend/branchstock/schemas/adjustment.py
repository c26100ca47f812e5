"""
Adjustment schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import Field, model_validator

from branchstock.models.enums import AdjustmentMode
from branchstock.schemas.common import CamelModel, LineKey, VariantOut

MAX_BULK_ADJUSTMENTS = 500


class AdjustmentItem(LineKey):
    """One adjustment line. For `set` the quantity is the absolute target."""
    quantity: int = Field(..., ge=0)
    mode: AdjustmentMode = AdjustmentMode.ADD
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _relative_modes_need_quantity(self):
        if self.mode != AdjustmentMode.SET and self.quantity <= 0:
            raise ValueError(f"quantity must be greater than 0 for mode '{self.mode.value}'")
        return self


class TransactionData(CamelModel):
    payment_method: Optional[Literal["cash", "bkash", "nagad", "rocket", "bank_transfer"]] = None
    reference: Optional[str] = Field(None, max_length=200)


class AdjustmentCreate(CamelModel):
    """
    Create adjustment request.

    Either a single line (productId, variantSku, quantity, mode) or a bulk
    list in `adjustments` (legacy `items` is accepted too).
    """
    branch_id: Optional[UUID] = None
    adjustments: Optional[List[AdjustmentItem]] = None
    items: Optional[List[AdjustmentItem]] = None
    product_id: Optional[UUID] = None
    variant_sku: Optional[str] = None
    quantity: Optional[int] = None
    mode: Optional[AdjustmentMode] = None
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    lost_amount: Optional[Decimal] = Field(None, ge=0)
    transaction_data: Optional[TransactionData] = None

    @model_validator(mode="after")
    def _one_shape(self):
        bulk = self.adjustments if self.adjustments is not None else self.items
        if bulk is not None and self.product_id is not None:
            raise ValueError("Send either a single adjustment or a list, not both")
        if bulk is None and self.product_id is None:
            raise ValueError("productId or adjustments[] is required")
        if bulk is not None:
            if not bulk:
                raise ValueError("adjustments must not be empty")
            if len(bulk) > MAX_BULK_ADJUSTMENTS:
                raise ValueError(f"Maximum {MAX_BULK_ADJUSTMENTS} adjustments per request")
        elif self.quantity is None:
            raise ValueError("quantity is required")
        elif self.quantity < 0:
            raise ValueError("quantity cannot be negative")
        elif (self.mode or AdjustmentMode.ADD) != AdjustmentMode.SET and self.quantity == 0:
            raise ValueError("quantity must be greater than 0")
        return self

    def lines(self) -> List[AdjustmentItem]:
        """Normalized line list for either request shape."""
        bulk = self.adjustments if self.adjustments is not None else self.items
        if bulk is not None:
            return list(bulk)
        return [AdjustmentItem(
            product_id=self.product_id,
            variant_sku=self.variant_sku,
            quantity=self.quantity,
            mode=self.mode or AdjustmentMode.ADD,
            reason=self.reason,
        )]


class AdjustmentLineResponse(VariantOut):
    id: UUID
    line_number: int
    product_id: UUID
    variant_sku: Optional[str] = None
    mode: str
    quantity: int
    previous_quantity: int
    new_quantity: int
    delta: int
    movement_id: Optional[UUID] = None
    reason: Optional[str] = None


class AdjustmentResponse(CamelModel):
    id: UUID
    adjustment_number: str
    branch_id: UUID
    reason: Optional[str] = None
    notes: Optional[str] = None
    lost_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    finance_status: str
    finance_transaction_id: Optional[str] = None
    finance_error: Optional[str] = None
    actor_id: UUID
    created_at: Optional[datetime] = None
    lines: List[AdjustmentLineResponse] = Field(default_factory=list)
