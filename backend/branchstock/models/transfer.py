"""
Transfer (challan) models - inter-branch shipments.
Dispatch debits the sender (transfer_out), receive credits the receiver (transfer_in).
"""
import uuid

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow
from branchstock.models.enums import DocumentType, TransferStatus

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Transfer(Base):
    """Challan moving stock from sender to receiver branch."""
    __tablename__ = "transfers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    challan_number = Column(String(100), nullable=False, unique=True)
    sender_branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    receiver_branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    stock_request_id = Column(Uuid, nullable=True)  # StockRequest this challan fulfils
    transfer_type = Column(String(20), nullable=False)  # head_to_sub, sub_to_sub, sub_to_head
    document_type = Column(String(30), nullable=False, default=DocumentType.DELIVERY_CHALLAN.value)
    status = Column(String(20), nullable=False, default=TransferStatus.DRAFT.value)
    transport = Column(JSONType, nullable=True)  # vehicle / driver details
    remarks = Column(Text, nullable=True)
    total_items = Column(Integer, nullable=False, default=0)
    total_quantity = Column(Integer, nullable=False, default=0)
    created_by = Column(Uuid, nullable=False)
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(TIMESTAMP(timezone=True), nullable=True)
    dispatched_by = Column(Uuid, nullable=True)
    dispatched_at = Column(TIMESTAMP(timezone=True), nullable=True)
    received_by = Column(Uuid, nullable=True)
    received_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_by = Column(Uuid, nullable=True)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("sender_branch_id != receiver_branch_id", name="transfer_distinct_branches"),
    )

    sender_branch = relationship("Branch", foreign_keys=[sender_branch_id])
    receiver_branch = relationship("Branch", foreign_keys=[receiver_branch_id])
    items = relationship(
        "TransferItem",
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferItem.line_number",
    )
    status_history = relationship(
        "TransferStatusHistory",
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="TransferStatusHistory.position",
    )


class TransferItem(Base):
    """Challan line; quantity_received is set once, by the receive step."""
    __tablename__ = "transfer_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_id = Column(Uuid, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False)
    line_number = Column(Integer, nullable=False)
    product_id = Column(Uuid, nullable=False)
    variant_sku = Column(String(100), nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    quantity_received = Column(Integer, nullable=True)
    carton_number = Column(String(100), nullable=True)  # free text
    cost_price = Column(Numeric(20, 4), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="transfer_item_quantity_positive"),
    )

    transfer = relationship("Transfer", back_populates="items")


class TransferStatusHistory(Base):
    """Append-only transition log for transfers"""
    __tablename__ = "transfer_status_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transfer_id = Column(Uuid, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)  # 1, 2, 3... per transfer
    status = Column(String(20), nullable=False)
    actor_id = Column(Uuid, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    transfer = relationship("Transfer", back_populates="status_history")
