"""
Stock adjustment models (manual add / remove / set corrections)
"""
import uuid

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow
from branchstock.models.enums import FinanceStatus


class Adjustment(Base):
    """One adjustment call; referent of every `adjustment` movement it posts."""
    __tablename__ = "adjustments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    adjustment_number = Column(String(100), nullable=False, unique=True)
    branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    lost_amount = Column(Numeric(20, 4), nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(200), nullable=True)
    finance_status = Column(String(20), nullable=False, default=FinanceStatus.NOT_REQUESTED.value)
    finance_transaction_id = Column(String(200), nullable=True)
    finance_error = Column(Text, nullable=True)
    actor_id = Column(Uuid, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    branch = relationship("Branch")
    lines = relationship(
        "AdjustmentLine",
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="AdjustmentLine.line_number",
    )


class AdjustmentLine(Base):
    """Per-key outcome of an adjustment; movement_id is NULL when a set had no delta."""
    __tablename__ = "adjustment_lines"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    adjustment_id = Column(Uuid, ForeignKey("adjustments.id", ondelete="CASCADE"), nullable=False)
    line_number = Column(Integer, nullable=False)
    product_id = Column(Uuid, nullable=False)
    variant_sku = Column(String(100), nullable=False, default="")
    mode = Column(String(10), nullable=False)  # add, remove, set
    quantity = Column(Integer, nullable=False)  # As entered (target for set)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    delta = Column(Integer, nullable=False)
    movement_id = Column(Uuid, ForeignKey("stock_movements.id"), nullable=True)
    reason = Column(String(500), nullable=True)

    adjustment = relationship("Adjustment", back_populates="lines")
    movement = relationship("StockMovement")
