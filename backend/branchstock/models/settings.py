"""
Document numbering model
"""
import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.types import TIMESTAMP

from branchstock.database import Base, utcnow


class DocumentSequence(Base):
    """
    Document numbering sequences

    BRANCH-SPECIFIC counters for purchases, challans, requests and
    adjustments. Numbers MUST include the branch code.
    """
    __tablename__ = "document_sequences"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    document_type = Column(String(50), nullable=False)  # PURCHASE, CHALLAN, STOCK_REQUEST, ADJUSTMENT
    prefix = Column(String(20), nullable=False)
    current_number = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("branch_id", "document_type", name="uq_document_sequence_branch_type"),
        {"comment": "BRANCH-SPECIFIC document numbering. Row is locked while a number is issued."},
    )
