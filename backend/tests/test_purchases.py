"""
Purchase workflow: receive posts stock, payments, cancellation, role gate.
"""
import uuid
from decimal import Decimal

import pytest

from branchstock.exceptions import ForbiddenError, InvalidStateTransitionError, ValidationError
from branchstock.models import StockKey, StockMovement
from branchstock.models.enums import ReferenceKind
from branchstock.schemas.purchase import (
    PurchaseApprove,
    PurchaseCancel,
    PurchaseCreate,
    PurchasePay,
    PurchaseReceive,
    PurchaseUpdate,
)
from branchstock.services.purchase_service import PurchaseService
from branchstock.services.stock_ledger import StockLedger
from branchstock.services.supplier_service import SupplierService
from branchstock.schemas.directory import SupplierCreate


def _draft(db, actor, product_id, quantity=10, cost="500", **extra):
    purchase = PurchaseService.create_purchase(db, actor, PurchaseCreate(
        items=[{"productId": str(product_id), "quantity": quantity, "costPrice": cost}],
        **extra,
    ))
    db.commit()
    return purchase


def test_receive_posts_purchase_movement(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id)
    assert purchase.status == "draft"
    assert purchase.grand_total == Decimal("5000")

    PurchaseService.receive(db, head_actor, purchase.id, PurchaseReceive(action="receive"))
    db.commit()

    purchase = PurchaseService.get_purchase(db, purchase.id)
    assert purchase.status == "received"
    key = StockKey(product_id, branches["head"].id)
    assert StockLedger.get_quantity(db, key) == 10

    movements = StockLedger.movements_for_reference(db, ReferenceKind.PURCHASE, purchase.id)
    assert len(movements) == 1
    assert movements[0].movement_type == "purchase"
    assert movements[0].quantity == 10
    assert movements[0].cost_per_unit == Decimal("500")
    assert [h.status for h in purchase.status_history] == ["draft", "received"]


def test_receive_twice_rejected(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id)
    PurchaseService.receive(db, head_actor, purchase.id, PurchaseReceive(action="receive"))
    db.commit()

    with pytest.raises(InvalidStateTransitionError):
        PurchaseService.receive(db, head_actor, purchase.id, PurchaseReceive(action="receive"))
    db.rollback()
    assert db.query(StockMovement).count() == 1


def test_approve_then_receive(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id, quantity=3)
    PurchaseService.approve(db, head_actor, purchase.id, PurchaseApprove(action="approve"))
    PurchaseService.receive(db, head_actor, purchase.id, PurchaseReceive(action="receive"))
    db.commit()

    purchase = PurchaseService.get_purchase(db, purchase.id)
    assert [h.status for h in purchase.status_history] == ["draft", "approved", "received"]
    assert purchase.approved_by == head_actor.id


def test_auto_receive_with_payment(db, head_actor, branches, product_id):
    purchase = _draft(
        db, head_actor, product_id, quantity=2, cost="100",
        autoApprove=True, autoReceive=True, payment={"amount": "50", "method": "bank_transfer"},
    )

    assert purchase.status == "received"
    assert purchase.paid_amount == Decimal("50")
    assert purchase.due_amount == Decimal("150")
    assert purchase.payment_status == "partial"
    assert StockLedger.get_quantity(db, StockKey(product_id, branches["head"].id)) == 2


def test_payments_and_overpayment(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id, quantity=1, cost="300")

    PurchaseService.pay(db, head_actor, purchase.id, PurchasePay(action="pay", amount="100"))
    PurchaseService.pay(db, head_actor, purchase.id, PurchasePay(action="pay", amount="200"))
    db.commit()
    purchase = PurchaseService.get_purchase(db, purchase.id)
    assert purchase.payment_status == "paid"
    assert len(purchase.payments) == 2

    with pytest.raises(ValidationError):
        PurchaseService.pay(db, head_actor, purchase.id, PurchasePay(action="pay", amount="1"))


def test_cancel_blocks_receive_and_pay(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id)
    PurchaseService.cancel(db, head_actor, purchase.id, PurchaseCancel(action="cancel", reason="duplicate"))
    db.commit()

    with pytest.raises(InvalidStateTransitionError):
        PurchaseService.receive(db, head_actor, purchase.id, PurchaseReceive(action="receive"))
    with pytest.raises(InvalidStateTransitionError):
        PurchaseService.pay(db, head_actor, purchase.id, PurchasePay(action="pay", amount="1"))
    assert PurchaseService.get_purchase(db, purchase.id).cancellation_reason == "duplicate"


def test_received_purchase_cannot_be_cancelled(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id, autoReceive=True)
    with pytest.raises(InvalidStateTransitionError):
        PurchaseService.cancel(db, head_actor, purchase.id, PurchaseCancel(action="cancel"))


def test_update_only_in_draft(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id)
    other = uuid.uuid4()
    PurchaseService.update_purchase(db, head_actor, purchase.id, PurchaseUpdate(
        items=[{"productId": str(other), "quantity": 4, "costPrice": "25"}],
        notes="revised",
    ))
    db.commit()

    purchase = PurchaseService.get_purchase(db, purchase.id)
    assert purchase.grand_total == Decimal("100")
    assert purchase.items[0].product_id == other

    PurchaseService.approve(db, head_actor, purchase.id, PurchaseApprove(action="approve"))
    db.commit()
    with pytest.raises(InvalidStateTransitionError):
        PurchaseService.update_purchase(db, head_actor, purchase.id, PurchaseUpdate(notes="late"))


def test_credit_terms_set_due_date(db, head_actor, branches, product_id):
    purchase = _draft(db, head_actor, product_id, paymentTerms="credit", creditDays=30, invoiceDate="2026-01-01")
    assert str(purchase.due_date) == "2026-01-31"


def test_supplier_must_be_active(db, head_actor, branches, product_id):
    supplier = SupplierService.create_supplier(db, SupplierCreate(name="Acme"))
    supplier.is_active = False
    db.commit()

    with pytest.raises(ValidationError):
        _draft(db, head_actor, product_id, supplierId=str(supplier.id))


def test_sub_branch_cannot_purchase(db, b2_actor, branches, product_id):
    with pytest.raises(ForbiddenError):
        _draft(db, b2_actor, product_id)


def test_head_office_cannot_purchase_for_sub_branch(db, head_actor, branches, product_id):
    with pytest.raises(ForbiddenError):
        _draft(db, head_actor, product_id, branchId=str(branches["b2"].id))


def test_invoice_numbers_increment(db, head_actor, branches, product_id):
    first = _draft(db, head_actor, product_id)
    second = _draft(db, head_actor, product_id)
    assert first.invoice_number == "PUR-HO-000001"
    assert second.invoice_number == "PUR-HO-000002"
