"""
Branch directory lookups (head office vs sub-branch).
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from branchstock.exceptions import NotFoundError, ValidationError
from branchstock.models import Branch
from branchstock.models.enums import BranchRole, BranchType, TransferType

logger = logging.getLogger(__name__)


class BranchService:
    """Service for branch lookups"""

    @staticmethod
    def get_branch(db: Session, branch_id: UUID) -> Branch:
        branch = db.get(Branch, branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        return branch

    @staticmethod
    def get_active_branch(db: Session, branch_id: UUID) -> Branch:
        branch = BranchService.get_branch(db, branch_id)
        if not branch.is_active:
            raise ValidationError(f"Branch {branch.code} is inactive", {"branch_id": str(branch_id)})
        return branch

    @staticmethod
    def head_office(db: Session) -> Optional[Branch]:
        """The active head office (oldest one if several are flagged)."""
        return (
            db.query(Branch)
            .filter(Branch.role == BranchRole.HEAD_OFFICE.value, Branch.is_active.is_(True))
            .order_by(Branch.created_at.asc())
            .first()
        )

    @staticmethod
    def require_head_office(db: Session) -> Branch:
        branch = BranchService.head_office(db)
        if branch is None:
            raise ValidationError("No active head office branch is configured")
        return branch

    @staticmethod
    def list_branches(db: Session, role: Optional[str] = None, include_inactive: bool = False) -> List[Branch]:
        query = db.query(Branch)
        if role:
            query = query.filter(Branch.role == role)
        if not include_inactive:
            query = query.filter(Branch.is_active.is_(True))
        return query.order_by(Branch.code.asc()).all()

    @staticmethod
    def create_branch(
        db: Session,
        code: str,
        name: str,
        role: str = BranchRole.SUB_BRANCH.value,
        type: str = BranchType.STORE.value,
        address: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Branch:
        """Register a branch in the directory mirror. Does not commit."""
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError("Branch code is required")
        try:
            role = BranchRole(role).value
            type = BranchType(type).value
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if db.query(Branch.id).filter(Branch.code == code).first():
            raise ValidationError(f"Branch code {code} already exists", {"code": code})
        branch = Branch(code=code, name=name, role=role, type=type, address=address, phone=phone)
        db.add(branch)
        db.flush()
        logger.info("Branch %s (%s) registered", code, role)
        return branch

    @staticmethod
    def transfer_type(sender: Branch, receiver: Branch) -> str:
        """Classify a shipment by the roles of its two ends."""
        if sender.is_head_office:
            return TransferType.HEAD_TO_SUB.value
        if receiver.is_head_office:
            return TransferType.SUB_TO_HEAD.value
        return TransferType.SUB_TO_SUB.value
