"""
Transfer (challan) schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from branchstock.models.enums import DocumentType
from branchstock.schemas.common import CamelModel, LineKey, VariantOut
from branchstock.schemas.purchase import StatusHistoryEntry


class TransportDetails(CamelModel):
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    estimated_arrival: Optional[datetime] = None
    courier_name: Optional[str] = None
    tracking_id: Optional[str] = None
    notes: Optional[str] = None


class TransferItemCreate(LineKey):
    quantity: int = Field(..., gt=0)
    carton_number: Optional[str] = Field(None, max_length=100)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class TransferCreate(CamelModel):
    sender_branch_id: Optional[UUID] = None  # Defaults to head office
    receiver_branch_id: UUID
    document_type: DocumentType = DocumentType.DELIVERY_CHALLAN
    items: List[TransferItemCreate] = Field(..., min_length=1)
    remarks: Optional[str] = None


class TransferUpdate(CamelModel):
    """Draft-only edit"""
    items: Optional[List[TransferItemCreate]] = Field(None, min_length=1)
    remarks: Optional[str] = None
    document_type: Optional[DocumentType] = None


class ReceiveLine(LineKey):
    """Override for one line; matched by itemId, else by (productId, variantSku)."""
    item_id: Optional[UUID] = None
    product_id: Optional[UUID] = None
    quantity_received: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _needs_item_or_product(self):
        if self.item_id is None and self.product_id is None:
            raise ValueError("itemId or productId is required")
        return self


# ----- Actions -----
class TransferApprove(CamelModel):
    action: Literal["approve"]
    notes: Optional[str] = None


class TransferDispatch(CamelModel):
    action: Literal["dispatch"]
    transport: Optional[TransportDetails] = None
    notes: Optional[str] = None


class TransferInTransit(CamelModel):
    action: Literal["in-transit", "in_transit"]
    transport: Optional[TransportDetails] = None
    notes: Optional[str] = None


class TransferReceive(CamelModel):
    action: Literal["receive"]
    items: Optional[List[ReceiveLine]] = None
    notes: Optional[str] = None


class TransferCancel(CamelModel):
    action: Literal["cancel"]
    reason: Optional[str] = None


TransferAction = Annotated[
    Union[TransferApprove, TransferDispatch, TransferInTransit, TransferReceive, TransferCancel],
    Field(discriminator="action"),
]


# ----- Responses -----
class TransferItemResponse(VariantOut):
    id: UUID
    line_number: int
    product_id: UUID
    variant_sku: Optional[str] = None
    quantity: int
    quantity_received: Optional[int] = None
    carton_number: Optional[str] = None
    cost_price: Optional[Decimal] = None
    notes: Optional[str] = None


class TransferResponse(CamelModel):
    id: UUID
    challan_number: str
    transfer_type: str
    document_type: str
    status: str
    sender_branch_id: UUID
    receiver_branch_id: UUID
    stock_request_id: Optional[UUID] = None
    transport: Optional[dict] = None
    remarks: Optional[str] = None
    total_items: int
    total_quantity: int
    created_by: UUID
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    dispatched_by: Optional[UUID] = None
    dispatched_at: Optional[datetime] = None
    received_by: Optional[UUID] = None
    received_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[TransferItemResponse] = Field(default_factory=list)
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)


class TransferStats(CamelModel):
    total: int
    by_status: Dict[str, int]
    pending: int
    in_transit: int

    @field_validator("by_status", mode="before")
    @classmethod
    def _all_statuses(cls, v):
        return dict(v)
