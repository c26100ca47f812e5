"""
Adjustment service - manual add / remove / set corrections.

Lines of one request are applied in order inside the caller's transaction, so
a bulk adjustment either posts every movement or none. Expense posting for a
``lost_amount`` happens afterwards (``post_loss``) and never undoes stock.
"""
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from branchstock.exceptions import FinanceError, NotFoundError
from branchstock.models import Adjustment, AdjustmentLine, MovementReference, StockKey
from branchstock.models.enums import AdjustmentMode, FinanceStatus, MovementType
from branchstock.schemas.adjustment import AdjustmentCreate, AdjustmentItem
from branchstock.services import policy
from branchstock.services.branch_service import BranchService
from branchstock.services.document_service import DocumentService
from branchstock.services.finance_client import FinanceClient, transaction_id
from branchstock.services.policy import Actor
from branchstock.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


class AdjustmentService:
    """Service for manual stock corrections"""

    @staticmethod
    def apply_line(
        db: Session,
        actor: Actor,
        key: StockKey,
        line: AdjustmentItem,
        reference: MovementReference,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> AdjustmentLine:
        """Post the movement for one line and describe the outcome."""
        mode = AdjustmentMode(line.mode)
        movement = None

        if mode == AdjustmentMode.SET:
            current = StockLedger.locked_quantity(db, key)
            policy.enforce_set_target(actor, current, line.quantity)
            delta = line.quantity - current
            if delta != 0:
                movement = StockLedger.append_movement(
                    db, key, MovementType.ADJUSTMENT, delta, reference, actor.id,
                    reason=reason, notes=notes, absolute=True,
                )
            previous = current
        else:
            delta = line.quantity if mode == AdjustmentMode.ADD else -line.quantity
            movement = StockLedger.append_movement(
                db, key, MovementType.ADJUSTMENT, delta, reference, actor.id,
                reason=reason, notes=notes,
            )
            previous = movement.balance_after - movement.quantity

        return AdjustmentLine(
            product_id=key.product_id,
            variant_sku=key.sku,
            mode=mode.value,
            quantity=line.quantity,
            previous_quantity=previous,
            new_quantity=previous + delta,
            delta=delta,
            movement_id=movement.id if movement is not None else None,
            reason=line.reason,
        )

    @staticmethod
    def create_adjustment(db: Session, actor: Actor, data: AdjustmentCreate) -> Adjustment:
        """Apply every line of the request. Does not commit."""
        branch = BranchService.get_active_branch(db, data.branch_id or actor.branch_id)
        lines = data.lines()
        for mode in {line.mode.value for line in lines}:
            policy.enforce(actor, branch, "adjustment", mode)

        lost_amount = data.lost_amount if data.lost_amount and data.lost_amount > 0 else None
        adjustment = Adjustment(
            adjustment_number=DocumentService.get_adjustment_number(db, branch.id),
            branch_id=branch.id,
            reason=data.reason,
            notes=data.notes,
            lost_amount=lost_amount,
            payment_method=data.transaction_data.payment_method if data.transaction_data else None,
            payment_reference=data.transaction_data.reference if data.transaction_data else None,
            finance_status=FinanceStatus.NOT_REQUESTED.value,
            actor_id=actor.id,
        )
        db.add(adjustment)
        db.flush()

        reference = MovementReference.adjustment(adjustment.id)
        for number, line in enumerate(lines, start=1):
            key = StockKey(line.product_id, branch.id, line.variant_sku)
            result = AdjustmentService.apply_line(
                db, actor, key, line, reference,
                reason=line.reason or data.reason,
                notes=data.notes,
            )
            result.line_number = number
            adjustment.lines.append(result)
        db.flush()

        logger.info(
            "Adjustment %s at %s: %d line(s) by %s",
            adjustment.adjustment_number, branch.code, len(lines), actor.id,
        )
        return adjustment

    @staticmethod
    def post_loss(db: Session, adjustment_id: UUID, client: Optional[FinanceClient] = None) -> Optional[str]:
        """
        Create the expense transaction for an adjustment's lost amount.

        Returns a warning message when posting failed, otherwise None. The
        outcome is stored on the adjustment; stock is never touched. Does not
        commit.
        """
        adjustment = AdjustmentService.get_adjustment(db, adjustment_id)
        if not adjustment.lost_amount or adjustment.lost_amount <= 0:
            return None
        if adjustment.finance_status == FinanceStatus.POSTED.value:
            return None

        client = client or FinanceClient()
        try:
            document = client.post_expense(
                amount=adjustment.lost_amount,
                branch_id=adjustment.branch_id,
                reference_id=adjustment.id,
                description=f"Stock loss {adjustment.adjustment_number}"
                + (f": {adjustment.reason}" if adjustment.reason else ""),
                payment_method=adjustment.payment_method,
                reference=adjustment.payment_reference,
            )
        except FinanceError as e:
            logger.warning(
                "Expense posting failed for adjustment %s: %s",
                adjustment.adjustment_number, e.message,
            )
            adjustment.finance_status = FinanceStatus.FAILED.value
            adjustment.finance_error = e.message
            db.flush()
            return f"Stock adjusted, but the expense transaction could not be created: {e.message}"

        adjustment.finance_status = FinanceStatus.POSTED.value
        adjustment.finance_transaction_id = transaction_id(document)
        adjustment.finance_error = None
        db.flush()
        return None

    @staticmethod
    def get_adjustment(db: Session, adjustment_id: UUID) -> Adjustment:
        adjustment = (
            db.query(Adjustment)
            .options(selectinload(Adjustment.lines))
            .filter(Adjustment.id == adjustment_id)
            .first()
        )
        if adjustment is None:
            raise NotFoundError("Adjustment", adjustment_id)
        return adjustment

    @staticmethod
    def list_adjustments(
        db: Session,
        branch_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Adjustment], int]:
        query = db.query(Adjustment)
        if branch_id:
            query = query.filter(Adjustment.branch_id == branch_id)
        total = query.count()
        items = (
            query.options(selectinload(Adjustment.lines))
            .order_by(Adjustment.created_at.desc(), Adjustment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total
