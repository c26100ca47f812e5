"""
Branch model (directory mirror used for role lookups)
"""
import uuid

from sqlalchemy import Boolean, Column, String, Text, Uuid
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow
from branchstock.models.enums import BranchRole


class Branch(Base):
    """Branch model"""
    __tablename__ = "branches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), nullable=False, unique=True)  # Upper-case, used in document numbers
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=BranchRole.SUB_BRANCH.value)  # head_office, sub_branch
    type = Column(String(20), nullable=False, default="store")  # store, warehouse, outlet, franchise
    address = Column(Text)
    phone = Column(String(50))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_head_office(self) -> bool:
        return self.role == BranchRole.HEAD_OFFICE.value

    def __repr__(self):
        return f"<Branch {self.code} ({self.role})>"
