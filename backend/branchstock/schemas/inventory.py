"""
Stock entry and stock movement schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, Field

from branchstock.models.enums import ReferenceKind
from branchstock.schemas.common import CamelModel, VariantOut


class StockEntryResponse(VariantOut):
    id: UUID
    product_id: UUID
    variant_sku: Optional[str] = None
    branch_id: UUID
    quantity: int
    reorder_point: Optional[int] = None
    reorder_quantity: Optional[int] = None
    movement_count: int
    version: int
    needs_reorder: bool = False
    last_movement_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReorderLevelsUpdate(CamelModel):
    reorder_point: Optional[int] = Field(None, ge=0)
    reorder_quantity: Optional[int] = Field(None, ge=0)


class MovementReferenceResponse(CamelModel):
    """Tagged origin of a movement: {kind, id}"""
    kind: ReferenceKind
    id: Optional[UUID] = None


class StockMovementResponse(VariantOut):
    id: UUID
    stock_entry_id: UUID
    sequence: int
    product_id: UUID
    variant_sku: Optional[str] = None
    branch_id: UUID
    movement_type: str = Field(
        validation_alias=AliasChoices("movement_type", "type"),
        serialization_alias="type",
    )
    quantity: int
    balance_after: int
    cost_per_unit: Optional[Decimal] = None
    reference_type: str
    reference: MovementReferenceResponse
    actor_id: UUID
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
