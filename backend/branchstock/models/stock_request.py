"""
Stock request models - sub-branch replenishment requests.
Fulfilling a request creates exactly one draft Transfer.
"""
import uuid

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow
from branchstock.models.enums import RequestPriority, RequestStatus


class StockRequest(Base):
    """Replenishment request from a sub-branch to head office."""
    __tablename__ = "stock_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    request_number = Column(String(100), nullable=False, unique=True)
    requesting_branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    fulfilling_branch_id = Column(Uuid, ForeignKey("branches.id"), nullable=True)
    transfer_id = Column(Uuid, ForeignKey("transfers.id", ondelete="SET NULL"), nullable=True)
    priority = Column(String(10), nullable=False, default=RequestPriority.NORMAL.value)
    status = Column(String(20), nullable=False, default=RequestStatus.PENDING.value)
    reason = Column(Text, nullable=True)
    expected_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    total_requested = Column(Integer, nullable=False, default=0)
    total_approved = Column(Integer, nullable=False, default=0)
    total_fulfilled = Column(Integer, nullable=False, default=0)
    created_by = Column(Uuid, nullable=False)
    reviewed_by = Column(Uuid, nullable=True)
    reviewed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    fulfilled_by = Column(Uuid, nullable=True)
    fulfilled_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_by = Column(Uuid, nullable=True)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    requesting_branch = relationship("Branch", foreign_keys=[requesting_branch_id])
    fulfilling_branch = relationship("Branch", foreign_keys=[fulfilling_branch_id])
    transfer = relationship("Transfer", foreign_keys=[transfer_id])
    items = relationship(
        "StockRequestItem",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="StockRequestItem.line_number",
    )


class StockRequestItem(Base):
    """Requested line; approved and fulfilled quantities are filled in by head office."""
    __tablename__ = "stock_request_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    stock_request_id = Column(Uuid, ForeignKey("stock_requests.id", ondelete="CASCADE"), nullable=False)
    line_number = Column(Integer, nullable=False)
    product_id = Column(Uuid, nullable=False)
    variant_sku = Column(String(100), nullable=False, default="")
    quantity_requested = Column(Integer, nullable=False)
    quantity_approved = Column(Integer, nullable=True)
    quantity_fulfilled = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity_requested > 0", name="stock_request_item_quantity_positive"),
    )

    request = relationship("StockRequest", back_populates="items")
