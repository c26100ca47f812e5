"""
Purchase models (supplier invoices received at head office)
"""
import uuid

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow
from branchstock.models.enums import PaymentStatus, PurchaseStatus


class Purchase(Base):
    """Supplier purchase invoice. Receiving is the only step that adds stock."""
    __tablename__ = "purchases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String(100), nullable=False, unique=True)
    purchase_order_number = Column(String(100), nullable=True)
    supplier_id = Column(Uuid, ForeignKey("suppliers.id"), nullable=True)
    branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    invoice_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=PurchaseStatus.DRAFT.value)  # draft, approved, received, cancelled
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)  # unpaid, partial, paid
    payment_terms = Column(String(20), nullable=False, default="cash")  # cash, credit
    credit_days = Column(Integer, nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    sub_total = Column(Numeric(20, 4), nullable=False, default=0)
    grand_total = Column(Numeric(20, 4), nullable=False, default=0)
    paid_amount = Column(Numeric(20, 4), nullable=False, default=0)
    due_amount = Column(Numeric(20, 4), nullable=False, default=0)
    notes = Column(Text)
    created_by = Column(Uuid, nullable=False)
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(TIMESTAMP(timezone=True), nullable=True)
    received_by = Column(Uuid, nullable=True)
    received_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_by = Column(Uuid, nullable=True)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    branch = relationship("Branch")
    supplier = relationship("Supplier")
    items = relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.line_number",
    )
    payments = relationship(
        "PurchasePayment",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchasePayment.created_at",
    )
    status_history = relationship(
        "PurchaseStatusHistory",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseStatusHistory.position",
    )


class PurchaseItem(Base):
    """Purchase line items"""
    __tablename__ = "purchase_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_id = Column(Uuid, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False)
    line_number = Column(Integer, nullable=False)
    product_id = Column(Uuid, nullable=False)
    variant_sku = Column(String(100), nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    cost_price = Column(Numeric(20, 4), nullable=False)
    line_total = Column(Numeric(20, 4), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="purchase_item_quantity_positive"),
        CheckConstraint("cost_price >= 0", name="purchase_item_cost_non_negative"),
    )

    purchase = relationship("Purchase", back_populates="items")


class PurchasePayment(Base):
    """Payment recorded against a purchase. Never touches stock."""
    __tablename__ = "purchase_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_id = Column(Uuid, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(20, 4), nullable=False)
    method = Column(String(50), nullable=False, default="cash")
    reference = Column(String(200), nullable=True)
    transaction_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    actor_id = Column(Uuid, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)

    purchase = relationship("Purchase", back_populates="payments")


class PurchaseStatusHistory(Base):
    """Append-only transition log for purchases"""
    __tablename__ = "purchase_status_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_id = Column(Uuid, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)  # 1, 2, 3... per purchase
    status = Column(String(20), nullable=False)
    actor_id = Column(Uuid, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    purchase = relationship("Purchase", back_populates="status_history")
