"""
Document Numbering Service - branch-coded sequential numbering
"""
import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from branchstock.exceptions import NotFoundError, ValidationError
from branchstock.models import Branch, DocumentSequence

logger = logging.getLogger(__name__)


class DocumentService:
    """Service for generating document numbers"""

    PREFIXES = {
        "PURCHASE": "PUR",
        "CHALLAN": "CHN",
        "STOCK_REQUEST": "REQ",
        "ADJUSTMENT": "ADJ",
    }

    @staticmethod
    def _lock_sequence(db: Session, branch_id: UUID, document_type: str):
        return (
            db.query(DocumentSequence)
            .filter(
                DocumentSequence.branch_id == branch_id,
                DocumentSequence.document_type == document_type,
            )
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_next_document_number(db: Session, branch_id: UUID, document_type: str) -> str:
        """
        Get next sequential document number for a branch.

        Format: {PREFIX}-{BRANCH_CODE}-000001

        The sequence row is locked for the rest of the caller's transaction, so
        two concurrent documents for the same branch never share a number.
        Does not commit.
        """
        prefix = DocumentService.PREFIXES.get(document_type)
        if prefix is None:
            raise ValidationError(f"Unknown document type: {document_type}")

        branch = db.get(Branch, branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        if not branch.code:
            raise ValidationError("Branch code is required for document numbering")

        sequence = DocumentService._lock_sequence(db, branch_id, document_type)
        if sequence is None:
            try:
                with db.begin_nested():
                    db.add(DocumentSequence(
                        branch_id=branch_id,
                        document_type=document_type,
                        prefix=prefix,
                        current_number=0,
                    ))
            except IntegrityError:
                # Another transaction created it first; fall through to the lock.
                logger.debug("Sequence %s/%s created concurrently", branch.code, document_type)
            sequence = DocumentService._lock_sequence(db, branch_id, document_type)

        sequence.current_number += 1
        db.flush()
        return f"{prefix}-{branch.code}-{sequence.current_number:06d}"

    @staticmethod
    def get_purchase_number(db: Session, branch_id: UUID) -> str:
        """Format: PUR-{BRANCH_CODE}-000001"""
        return DocumentService.get_next_document_number(db, branch_id, "PURCHASE")

    @staticmethod
    def get_challan_number(db: Session, branch_id: UUID) -> str:
        """Format: CHN-{SENDER_CODE}-000001"""
        return DocumentService.get_next_document_number(db, branch_id, "CHALLAN")

    @staticmethod
    def get_request_number(db: Session, branch_id: UUID) -> str:
        return DocumentService.get_next_document_number(db, branch_id, "STOCK_REQUEST")

    @staticmethod
    def get_adjustment_number(db: Session, branch_id: UUID) -> str:
        return DocumentService.get_next_document_number(db, branch_id, "ADJUSTMENT")
