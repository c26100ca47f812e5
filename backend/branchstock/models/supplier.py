"""
Supplier model
"""
import uuid

from sqlalchemy import Boolean, Column, Integer, String, Text, Uuid
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow


class Supplier(Base):
    """Supplier model"""
    __tablename__ = "suppliers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), nullable=False, unique=True)  # SUP-0001 when not supplied
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False, default="local")  # local, import, manufacturer, wholesaler
    contact_person = Column(String(255))
    phone = Column(String(50))
    email = Column(String(255))
    address = Column(Text)
    tax_id = Column(String(50))
    payment_terms = Column(String(20), nullable=False, default="cash")  # cash, credit
    credit_days = Column(Integer, nullable=False, default=0)
    notes = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)
