"""
Stock ledger models.

StockMovement - Append-only record of every quantity change (single source of truth)
StockEntry    - Current quantity per (product, variant, branch), updated in the
                same transaction as every ledger append
"""
import uuid
from dataclasses import dataclass
from typing import NamedTuple, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow
from branchstock.models.enums import ReferenceKind


class StockKey(NamedTuple):
    """Identity of one ledger stream."""

    product_id: uuid.UUID
    branch_id: uuid.UUID
    variant_sku: Optional[str] = None

    @property
    def sku(self) -> str:
        """Stored form of the variant ("" for simple products)."""
        return self.variant_sku or ""


@dataclass(frozen=True)
class MovementReference:
    """Tagged pointer to the document that produced a movement."""

    kind: ReferenceKind
    id: Optional[uuid.UUID] = None

    @classmethod
    def purchase(cls, purchase_id):
        return cls(ReferenceKind.PURCHASE, purchase_id)

    @classmethod
    def transfer(cls, transfer_id):
        return cls(ReferenceKind.TRANSFER, transfer_id)

    @classmethod
    def adjustment(cls, adjustment_id):
        return cls(ReferenceKind.ADJUSTMENT, adjustment_id)


class StockEntry(Base):
    """
    Balance cache - current quantity for one ledger stream.

    Created lazily on the first movement for a key. Never written outside
    StockLedger.append_movement / rebuild_entry.
    """
    __tablename__ = "stock_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, nullable=False)
    variant_sku = Column(String(100), nullable=False, default="")
    branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    reorder_point = Column(Integer, nullable=True)
    reorder_quantity = Column(Integer, nullable=True)
    movement_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    last_movement_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("product_id", "variant_sku", "branch_id", name="uq_stock_entry_key"),
        CheckConstraint("quantity >= 0", name="stock_entry_quantity_non_negative"),
        {"comment": "Current stock per (product, variant, branch). Updated in same transaction as ledger writes."},
    )
    __mapper_args__ = {"version_id_col": version}

    branch = relationship("Branch")

    @property
    def key(self) -> StockKey:
        return StockKey(self.product_id, self.branch_id, self.variant_sku or None)

    @property
    def needs_reorder(self) -> bool:
        return self.reorder_point is not None and self.quantity <= self.reorder_point


class StockMovement(Base):
    """
    Stock Movement - Append-only record of all stock changes

    This is the SINGLE SOURCE OF TRUTH for quantity.
    Never update or delete. Corrections are new movements.
    """
    __tablename__ = "stock_movements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    stock_entry_id = Column(Uuid, ForeignKey("stock_entries.id", ondelete="RESTRICT"), nullable=False)
    sequence = Column(Integer, nullable=False)  # 1, 2, 3... per stock entry; replay order
    product_id = Column(Uuid, nullable=False)
    variant_sku = Column(String(100), nullable=False, default="")
    branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    movement_type = Column(String(30), nullable=False)  # purchase, sale, return, adjustment, transfer_in, ...
    quantity = Column(Integer, nullable=False)  # Positive = add, Negative = remove
    balance_after = Column(Integer, nullable=False)
    cost_per_unit = Column(Numeric(20, 4), nullable=True)
    reference_type = Column(String(30), nullable=False)  # purchase, transfer, adjustment, sale, ...
    reference_id = Column(Uuid, nullable=True)
    actor_id = Column(Uuid, nullable=False)
    reason = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("stock_entry_id", "sequence", name="uq_stock_movement_entry_sequence"),
        CheckConstraint("quantity != 0", name="stock_movement_quantity_not_zero"),
        CheckConstraint("balance_after >= 0", name="stock_movement_balance_non_negative"),
        Index("ix_stock_movements_key", "product_id", "variant_sku", "branch_id"),
        Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        Index("ix_stock_movements_created_at", "created_at"),
        {"comment": "Append-only stock ledger. Never update or delete. Stock = SUM(quantity) per key."},
    )

    entry = relationship("StockEntry")
    branch = relationship("Branch")

    @property
    def reference(self) -> MovementReference:
        return MovementReference(ReferenceKind(self.reference_type), self.reference_id)

    @property
    def key(self) -> StockKey:
        return StockKey(self.product_id, self.branch_id, self.variant_sku or None)
