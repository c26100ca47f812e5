"""
Append-only rows refuse UPDATE and DELETE through the session.
"""
import pytest

from branchstock.exceptions import ImmutableRecordError
from branchstock.models import StockMovement
from branchstock.schemas.purchase import PurchaseCreate
from branchstock.services.purchase_service import PurchaseService


def test_movement_cannot_be_updated(db, branches, product_id, seed):
    seed(product_id, branches["head"].id, 5)
    movement = db.query(StockMovement).one()

    movement.quantity = 50
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()
    assert db.query(StockMovement).one().quantity == 5


def test_movement_cannot_be_deleted(db, branches, product_id, seed):
    seed(product_id, branches["head"].id, 5)
    db.delete(db.query(StockMovement).one())
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()
    assert db.query(StockMovement).count() == 1


def test_status_history_is_append_only(db, head_actor, branches, product_id):
    purchase = PurchaseService.create_purchase(db, head_actor, PurchaseCreate(
        items=[{"productId": str(product_id), "quantity": 1, "costPrice": "1"}],
    ))
    db.commit()

    entry = purchase.status_history[0]
    entry.notes = "rewritten"
    with pytest.raises(ImmutableRecordError):
        db.flush()
