"""
Purchase workflow (head office supplier invoices).

    draft --approve--> approved
    draft | approved --receive--> received     (posts one `purchase` movement per item)
    draft | approved --cancel--> cancelled
    pay: any status except cancelled; never touches stock
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from branchstock.database import utcnow
from branchstock.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from branchstock.models import (
    MovementReference,
    Purchase,
    PurchaseItem,
    PurchasePayment,
    PurchaseStatusHistory,
    StockKey,
    Supplier,
)
from branchstock.models.enums import MovementType, PaymentStatus, PaymentTerms, PurchaseStatus
from branchstock.schemas.purchase import (
    PaymentDetails,
    PurchaseApprove,
    PurchaseCancel,
    PurchaseCreate,
    PurchaseItemCreate,
    PurchasePay,
    PurchaseReceive,
    PurchaseUpdate,
)
from branchstock.services import policy
from branchstock.services.branch_service import BranchService
from branchstock.services.document_service import DocumentService
from branchstock.services.policy import Actor
from branchstock.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

DOCUMENT = "purchase"
ZERO = Decimal("0")


class PurchaseService:
    """Service for the purchase lifecycle"""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _query(db: Session):
        return db.query(Purchase).options(
            selectinload(Purchase.items),
            selectinload(Purchase.payments),
            selectinload(Purchase.status_history),
        )

    @staticmethod
    def get_purchase(db: Session, purchase_id: UUID, lock: bool = False) -> Purchase:
        query = PurchaseService._query(db).filter(Purchase.id == purchase_id)
        if lock:
            query = query.with_for_update(of=Purchase).populate_existing()
        purchase = query.first()
        if purchase is None:
            raise NotFoundError("Purchase", purchase_id)
        return purchase

    @staticmethod
    def _record(purchase: Purchase, status: str, actor: Actor, notes: Optional[str] = None) -> None:
        purchase.status = status
        purchase.status_history.append(PurchaseStatusHistory(
            position=len(purchase.status_history) + 1,
            status=status,
            actor_id=actor.id,
            notes=notes,
        ))

    @staticmethod
    def _require_status(purchase: Purchase, action: str, *allowed: PurchaseStatus) -> None:
        if purchase.status not in {s.value for s in allowed}:
            raise InvalidStateTransitionError(DOCUMENT, purchase.status, action)

    @staticmethod
    def _authorize(db: Session, actor: Actor, purchase: Purchase, action: str) -> None:
        branch = BranchService.get_branch(db, purchase.branch_id)
        policy.enforce(actor, branch, DOCUMENT, action)

    @staticmethod
    def _check_supplier(db: Session, supplier_id: Optional[UUID]) -> None:
        if supplier_id is None:
            return
        supplier = db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        if not supplier.is_active:
            raise ValidationError(f"Supplier {supplier.code} is inactive", {"supplier_id": str(supplier_id)})

    @staticmethod
    def _set_items(purchase: Purchase, items: List[PurchaseItemCreate]) -> None:
        purchase.items = [
            PurchaseItem(
                line_number=number,
                product_id=item.product_id,
                variant_sku=item.variant_sku or "",
                quantity=item.quantity,
                cost_price=item.cost_price,
                line_total=item.cost_price * item.quantity,
            )
            for number, item in enumerate(items, start=1)
        ]
        purchase.sub_total = sum((i.line_total for i in purchase.items), ZERO)
        purchase.grand_total = purchase.sub_total
        PurchaseService._refresh_payment_state(purchase)

    @staticmethod
    def _refresh_payment_state(purchase: Purchase) -> None:
        """paymentStatus and dueAmount follow from paidAmount vs grandTotal."""
        paid = Decimal(purchase.paid_amount or 0)
        total = Decimal(purchase.grand_total or 0)
        if paid <= 0:
            purchase.payment_status = PaymentStatus.UNPAID.value
        elif paid >= total:
            purchase.payment_status = PaymentStatus.PAID.value
        else:
            purchase.payment_status = PaymentStatus.PARTIAL.value
        purchase.due_amount = max(ZERO, total - paid)

    @staticmethod
    def _refresh_due_date(purchase: Purchase) -> None:
        if purchase.payment_terms == PaymentTerms.CREDIT.value:
            base = purchase.invoice_date or date.today()
            purchase.due_date = base + timedelta(days=purchase.credit_days or 0)
        else:
            purchase.due_date = None

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    @staticmethod
    def create_purchase(db: Session, actor: Actor, data: PurchaseCreate) -> Purchase:
        """Create a draft purchase, optionally approving, receiving and paying it. Does not commit."""
        branch = BranchService.get_active_branch(db, data.branch_id or actor.branch_id)
        policy.enforce(actor, branch, DOCUMENT, "create")
        PurchaseService._check_supplier(db, data.supplier_id)

        purchase = Purchase(
            invoice_number=DocumentService.get_purchase_number(db, branch.id),
            purchase_order_number=data.purchase_order_number,
            supplier_id=data.supplier_id,
            branch_id=branch.id,
            invoice_date=data.invoice_date,
            payment_terms=data.payment_terms.value,
            credit_days=data.credit_days,
            notes=data.notes,
            paid_amount=ZERO,
            created_by=actor.id,
        )
        PurchaseService._set_items(purchase, data.items)
        PurchaseService._refresh_due_date(purchase)
        PurchaseService._record(purchase, PurchaseStatus.DRAFT.value, actor, "Created")
        db.add(purchase)
        db.flush()
        logger.info("Purchase %s created at %s by %s", purchase.invoice_number, branch.code, actor.id)

        if data.auto_approve:
            PurchaseService.approve(db, actor, purchase.id, PurchaseApprove(action="approve"))
        if data.auto_receive:
            PurchaseService.receive(db, actor, purchase.id, PurchaseReceive(action="receive"))
        if data.payment is not None:
            PurchaseService.pay(db, actor, purchase.id, PurchasePay(action="pay", **data.payment.model_dump()))
        return purchase

    @staticmethod
    def update_purchase(db: Session, actor: Actor, purchase_id: UUID, data: PurchaseUpdate) -> Purchase:
        purchase = PurchaseService.get_purchase(db, purchase_id, lock=True)
        PurchaseService._authorize(db, actor, purchase, "update")
        PurchaseService._require_status(purchase, "update", PurchaseStatus.DRAFT)

        changes = data.model_dump(exclude_unset=True)
        if "supplier_id" in changes:
            PurchaseService._check_supplier(db, data.supplier_id)
            purchase.supplier_id = data.supplier_id
        for field in ("purchase_order_number", "invoice_date", "credit_days", "notes"):
            if field in changes:
                setattr(purchase, field, changes[field])
        if data.payment_terms is not None:
            purchase.payment_terms = data.payment_terms.value
        if data.items is not None:
            if Decimal(purchase.paid_amount or 0) > sum((i.cost_price * i.quantity for i in data.items), ZERO):
                raise ValidationError("New items total is below the amount already paid")
            PurchaseService._set_items(purchase, data.items)
        PurchaseService._refresh_due_date(purchase)
        db.flush()
        logger.info("Purchase %s updated by %s", purchase.invoice_number, actor.id)
        return purchase

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @staticmethod
    def approve(db: Session, actor: Actor, purchase_id: UUID, payload: PurchaseApprove) -> Purchase:
        purchase = PurchaseService.get_purchase(db, purchase_id, lock=True)
        PurchaseService._authorize(db, actor, purchase, "approve")
        PurchaseService._require_status(purchase, "approve", PurchaseStatus.DRAFT)

        purchase.approved_by = actor.id
        purchase.approved_at = utcnow()
        PurchaseService._record(purchase, PurchaseStatus.APPROVED.value, actor, payload.notes)
        db.flush()
        logger.info("Purchase %s approved by %s", purchase.invoice_number, actor.id)
        return purchase

    @staticmethod
    def receive(db: Session, actor: Actor, purchase_id: UUID, payload: PurchaseReceive) -> Purchase:
        """Post one `purchase` movement per item and mark the purchase received."""
        purchase = PurchaseService.get_purchase(db, purchase_id, lock=True)
        PurchaseService._authorize(db, actor, purchase, "receive")
        PurchaseService._require_status(purchase, "receive", PurchaseStatus.DRAFT, PurchaseStatus.APPROVED)

        reference = MovementReference.purchase(purchase.id)
        for item in purchase.items:
            StockLedger.append_movement(
                db,
                StockKey(item.product_id, purchase.branch_id, item.variant_sku or None),
                MovementType.PURCHASE,
                item.quantity,
                reference,
                actor.id,
                cost_per_unit=item.cost_price,
                reason=f"Purchase {purchase.invoice_number}",
            )

        purchase.received_by = actor.id
        purchase.received_at = utcnow()
        PurchaseService._record(purchase, PurchaseStatus.RECEIVED.value, actor, payload.notes)
        db.flush()
        logger.info(
            "Purchase %s received by %s (%d item(s))",
            purchase.invoice_number, actor.id, len(purchase.items),
        )
        return purchase

    @staticmethod
    def pay(db: Session, actor: Actor, purchase_id: UUID, payload: PaymentDetails) -> Purchase:
        purchase = PurchaseService.get_purchase(db, purchase_id, lock=True)
        PurchaseService._authorize(db, actor, purchase, "pay")
        if purchase.status == PurchaseStatus.CANCELLED.value:
            raise InvalidStateTransitionError(DOCUMENT, purchase.status, "pay")

        amount = Decimal(payload.amount)
        paid = Decimal(purchase.paid_amount or 0)
        total = Decimal(purchase.grand_total or 0)
        if paid + amount > total:
            raise ValidationError(
                "Payment exceeds the amount due",
                {"amount": str(amount), "due": str(max(ZERO, total - paid))},
            )

        purchase.payments.append(PurchasePayment(
            amount=amount,
            method=payload.method,
            reference=payload.reference,
            transaction_date=payload.transaction_date,
            notes=payload.notes,
            actor_id=actor.id,
        ))
        purchase.paid_amount = paid + amount
        PurchaseService._refresh_payment_state(purchase)
        db.flush()
        logger.info(
            "Payment %s recorded on purchase %s (%s)",
            amount, purchase.invoice_number, purchase.payment_status,
        )
        return purchase

    @staticmethod
    def cancel(db: Session, actor: Actor, purchase_id: UUID, payload: PurchaseCancel) -> Purchase:
        purchase = PurchaseService.get_purchase(db, purchase_id, lock=True)
        PurchaseService._authorize(db, actor, purchase, "cancel")
        PurchaseService._require_status(purchase, "cancel", PurchaseStatus.DRAFT, PurchaseStatus.APPROVED)

        purchase.cancelled_by = actor.id
        purchase.cancelled_at = utcnow()
        purchase.cancellation_reason = payload.reason
        PurchaseService._record(purchase, PurchaseStatus.CANCELLED.value, actor, payload.reason)
        db.flush()
        logger.info("Purchase %s cancelled by %s", purchase.invoice_number, actor.id)
        return purchase

    ACTIONS = {
        PurchaseApprove: "approve",
        PurchaseReceive: "receive",
        PurchasePay: "pay",
        PurchaseCancel: "cancel",
    }

    @staticmethod
    def perform_action(db: Session, actor: Actor, purchase_id: UUID, payload) -> Purchase:
        """Route a typed action payload to its transition function."""
        handler = getattr(PurchaseService, PurchaseService.ACTIONS[type(payload)])
        return handler(db, actor, purchase_id, payload)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def list_purchases(
        db: Session,
        branch_id: Optional[UUID] = None,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        supplier_id: Optional[UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Purchase], int]:
        query = db.query(Purchase)
        if branch_id:
            query = query.filter(Purchase.branch_id == branch_id)
        if status:
            query = query.filter(Purchase.status == status)
        if payment_status:
            query = query.filter(Purchase.payment_status == payment_status)
        if supplier_id:
            query = query.filter(Purchase.supplier_id == supplier_id)
        if search:
            query = query.filter(Purchase.invoice_number.ilike(f"%{search}%"))
        total = query.count()
        items = (
            query.options(
                selectinload(Purchase.items),
                selectinload(Purchase.payments),
                selectinload(Purchase.status_history),
            )
            .order_by(Purchase.created_at.desc(), Purchase.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total
