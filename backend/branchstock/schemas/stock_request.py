"""
Stock request schemas
"""
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, Field, field_validator

from branchstock.models.enums import DocumentType, RequestPriority
from branchstock.schemas.common import CamelModel, LineKey, VariantOut
from branchstock.schemas.transfer import TransportDetails


class StockRequestItemCreate(LineKey):
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None


class StockRequestCreate(CamelModel):
    requesting_branch_id: Optional[UUID] = None  # Defaults to the actor's branch
    items: List[StockRequestItemCreate] = Field(..., min_length=1)
    priority: RequestPriority = RequestPriority.NORMAL
    reason: Optional[str] = None
    expected_date: Optional[date] = None
    notes: Optional[str] = None


class ApproveLine(LineKey):
    quantity_approved: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("quantityApproved", "quantity_approved", "approvedQuantity", "quantity"),
    )


class FulfillLine(LineKey):
    quantity: int = Field(..., ge=0)
    carton_number: Optional[str] = Field(None, max_length=100)


# ----- Actions -----
class RequestApprove(CamelModel):
    action: Literal["approve"]
    items: Optional[List[ApproveLine]] = None
    review_notes: Optional[str] = None


class RequestReject(CamelModel):
    action: Literal["reject"]
    reason: str = Field(..., min_length=1)
    review_notes: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason is required")
        return v.strip()


class RequestFulfill(CamelModel):
    action: Literal["fulfill"]
    items: Optional[List[FulfillLine]] = None
    transport: Optional[TransportDetails] = None
    remarks: Optional[str] = None
    document_type: DocumentType = DocumentType.DELIVERY_CHALLAN
    fulfilling_branch_id: Optional[UUID] = None


class RequestCancel(CamelModel):
    action: Literal["cancel"]
    reason: Optional[str] = None


StockRequestAction = Annotated[
    Union[RequestApprove, RequestReject, RequestFulfill, RequestCancel],
    Field(discriminator="action"),
]


# ----- Responses -----
class StockRequestItemResponse(VariantOut):
    id: UUID
    line_number: int
    product_id: UUID
    variant_sku: Optional[str] = None
    quantity_requested: int
    quantity_approved: Optional[int] = None
    quantity_fulfilled: Optional[int] = None
    notes: Optional[str] = None


class StockRequestResponse(CamelModel):
    id: UUID
    request_number: str
    requesting_branch_id: UUID
    fulfilling_branch_id: Optional[UUID] = None
    transfer_id: Optional[UUID] = None
    priority: str
    status: str
    reason: Optional[str] = None
    expected_date: Optional[date] = None
    notes: Optional[str] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    total_requested: int
    total_approved: int
    total_fulfilled: int
    created_by: UUID
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    fulfilled_by: Optional[UUID] = None
    fulfilled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[StockRequestItemResponse] = Field(default_factory=list)
