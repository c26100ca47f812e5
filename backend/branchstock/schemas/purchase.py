"""
Purchase schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import Field, field_validator

from branchstock.models.enums import PaymentTerms
from branchstock.schemas.common import CamelModel, LineKey, VariantOut


class PurchaseItemCreate(LineKey):
    quantity: int = Field(..., gt=0)
    cost_price: Decimal = Field(Decimal("0"), ge=0)


class PaymentDetails(CamelModel):
    amount: Decimal = Field(..., gt=0)
    method: str = Field("cash", min_length=1, max_length=50)
    reference: Optional[str] = Field(None, max_length=200)
    transaction_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseCreate(CamelModel):
    """Create purchase request (head office only)"""
    branch_id: Optional[UUID] = None  # Defaults to the actor's branch
    supplier_id: Optional[UUID] = None
    purchase_order_number: Optional[str] = Field(None, max_length=100)
    invoice_date: Optional[date] = None
    payment_terms: PaymentTerms = PaymentTerms.CASH
    credit_days: int = Field(0, ge=0)
    items: List[PurchaseItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None
    auto_approve: bool = False
    auto_receive: bool = False
    payment: Optional[PaymentDetails] = None


class PurchaseUpdate(CamelModel):
    """Draft-only edit"""
    supplier_id: Optional[UUID] = None
    purchase_order_number: Optional[str] = Field(None, max_length=100)
    invoice_date: Optional[date] = None
    payment_terms: Optional[PaymentTerms] = None
    credit_days: Optional[int] = Field(None, ge=0)
    items: Optional[List[PurchaseItemCreate]] = Field(None, min_length=1)
    notes: Optional[str] = None


# ----- Actions -----
class PurchaseApprove(CamelModel):
    action: Literal["approve"]
    notes: Optional[str] = None


class PurchaseReceive(CamelModel):
    action: Literal["receive"]
    notes: Optional[str] = None


class PurchasePay(PaymentDetails):
    action: Literal["pay"]


class PurchaseCancel(CamelModel):
    action: Literal["cancel"]
    reason: Optional[str] = None


PurchaseAction = Annotated[
    Union[PurchaseApprove, PurchaseReceive, PurchasePay, PurchaseCancel],
    Field(discriminator="action"),
]


# ----- Responses -----
class PurchaseItemResponse(VariantOut):
    id: UUID
    line_number: int
    product_id: UUID
    variant_sku: Optional[str] = None
    quantity: int
    cost_price: Decimal
    line_total: Decimal


class PurchasePaymentResponse(CamelModel):
    id: UUID
    amount: Decimal
    method: str
    reference: Optional[str] = None
    transaction_date: Optional[date] = None
    notes: Optional[str] = None
    actor_id: UUID
    created_at: Optional[datetime] = None


class StatusHistoryEntry(CamelModel):
    status: str
    actor_id: UUID
    notes: Optional[str] = None
    timestamp: Optional[datetime] = Field(None, validation_alias="created_at")

    @field_validator("status", mode="before")
    @classmethod
    def _plain_status(cls, v):
        return getattr(v, "value", v)


class PurchaseResponse(CamelModel):
    id: UUID
    invoice_number: str
    purchase_order_number: Optional[str] = None
    supplier_id: Optional[UUID] = None
    branch_id: UUID
    invoice_date: Optional[date] = None
    status: str
    payment_status: str
    payment_terms: str
    credit_days: int
    due_date: Optional[date] = None
    sub_total: Decimal
    grand_total: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    notes: Optional[str] = None
    created_by: UUID
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    received_by: Optional[UUID] = None
    received_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[PurchaseItemResponse] = Field(default_factory=list)
    payments: List[PurchasePaymentResponse] = Field(default_factory=list)
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
