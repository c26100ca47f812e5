"""
Transfer (challan) workflow: approve checks stock, dispatch debits, receive credits.
"""
import uuid

import pytest

from branchstock.exceptions import (
    ForbiddenError,
    InsufficientStockError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from branchstock.models import MovementReference, StockKey, StockMovement
from branchstock.models.enums import MovementType, ReferenceKind
from branchstock.schemas.transfer import (
    TransferApprove,
    TransferCancel,
    TransferCreate,
    TransferDispatch,
    TransferInTransit,
    TransferReceive,
    TransferUpdate,
)
from branchstock.services.stock_ledger import StockLedger
from branchstock.services.transfer_service import TransferService


def _transfer(db, actor, receiver, items, **extra):
    transfer = TransferService.create_transfer(db, actor, TransferCreate(
        receiver_branch_id=receiver.id,
        items=items,
        **extra,
    ))
    db.commit()
    return transfer


def _approve_and_dispatch(db, actor, transfer_id, **dispatch):
    TransferService.approve(db, actor, transfer_id, TransferApprove(action="approve"))
    TransferService.dispatch(db, actor, transfer_id, TransferDispatch(action="dispatch", **dispatch))
    db.commit()


def test_full_receive(db, head_actor, b2_actor, branches, product_id, seed):
    head_key = seed(product_id, branches["head"].id, 10)
    b2_key = StockKey(product_id, branches["b2"].id)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 10}])
    assert transfer.sender_branch_id == branches["head"].id
    assert transfer.transfer_type == "head_to_sub"
    assert transfer.challan_number == "CHN-HO-000001"

    _approve_and_dispatch(db, head_actor, transfer.id)
    assert StockLedger.get_quantity(db, head_key) == 0
    assert StockLedger.get_quantity(db, b2_key) == 0

    TransferService.receive(db, b2_actor, transfer.id, TransferReceive(action="receive"))
    db.commit()

    transfer = TransferService.get_transfer(db, transfer.id)
    assert transfer.status == "received"
    assert transfer.items[0].quantity_received == 10
    assert StockLedger.get_quantity(db, b2_key) == 10
    movements = TransferService.movements(db, transfer.id)
    assert sorted((m.movement_type, m.quantity) for m in movements) == [("transfer_in", 10), ("transfer_out", -10)]
    assert [h.status for h in transfer.status_history] == ["draft", "approved", "dispatched", "received"]


def test_partial_receive(db, head_actor, b2_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 10)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 10}])
    _approve_and_dispatch(db, head_actor, transfer.id)

    TransferService.receive(db, b2_actor, transfer.id, TransferReceive(
        action="receive",
        items=[{"productId": str(product_id), "quantityReceived": 6}],
    ))
    db.commit()

    transfer = TransferService.get_transfer(db, transfer.id)
    assert transfer.status == "partial_received"
    assert StockLedger.get_quantity(db, StockKey(product_id, branches["b2"].id)) == 6
    assert StockLedger.get_quantity(db, StockKey(product_id, branches["head"].id)) == 0


def test_receive_override_by_item_id(db, head_actor, b2_actor, branches, seed):
    first, second = uuid.uuid4(), uuid.uuid4()
    seed(first, branches["head"].id, 5)
    seed(second, branches["head"].id, 5)
    transfer = _transfer(db, head_actor, branches["b2"], [
        {"productId": str(first), "quantity": 5},
        {"productId": str(second), "quantity": 5},
    ])
    _approve_and_dispatch(db, head_actor, transfer.id)
    second_item = transfer.items[1]

    TransferService.receive(db, b2_actor, transfer.id, TransferReceive(
        action="receive",
        items=[{"itemId": str(second_item.id), "quantityReceived": 0}],
    ))
    db.commit()

    assert StockLedger.get_quantity(db, StockKey(first, branches["b2"].id)) == 5
    assert StockLedger.get_quantity(db, StockKey(second, branches["b2"].id)) == 0
    assert TransferService.get_transfer(db, transfer.id).status == "partial_received"


def test_receive_line_needs_item_or_product():
    with pytest.raises(ValueError):
        TransferReceive(action="receive", items=[{"quantityReceived": 1}])


def test_conflicting_or_repeated_receive_lines_rejected(db, head_actor, b2_actor, branches, seed):
    first, second = uuid.uuid4(), uuid.uuid4()
    seed(first, branches["head"].id, 5)
    seed(second, branches["head"].id, 5)
    transfer = _transfer(db, head_actor, branches["b2"], [
        {"productId": str(first), "quantity": 5},
        {"productId": str(second), "quantity": 5},
    ])
    _approve_and_dispatch(db, head_actor, transfer.id)
    first_item = transfer.items[0]

    with pytest.raises(ValidationError):
        TransferService.receive(db, b2_actor, transfer.id, TransferReceive(
            action="receive",
            items=[{"itemId": str(first_item.id), "productId": str(second), "quantityReceived": 0}],
        ))
    db.rollback()
    with pytest.raises(ValidationError):
        TransferService.receive(db, b2_actor, transfer.id, TransferReceive(
            action="receive",
            items=[
                {"itemId": str(first_item.id), "quantityReceived": 1},
                {"productId": str(first), "quantityReceived": 4},
            ],
        ))
    db.rollback()

    assert TransferService.get_transfer(db, transfer.id).status == "dispatched"
    assert StockLedger.get_quantity(db, StockKey(first, branches["b2"].id)) == 0


def test_over_receipt_rejected(db, head_actor, b2_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 4)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 4}])
    _approve_and_dispatch(db, head_actor, transfer.id)

    with pytest.raises(ValidationError):
        TransferService.receive(db, b2_actor, transfer.id, TransferReceive(
            action="receive",
            items=[{"productId": str(product_id), "quantityReceived": 5}],
        ))


def test_approve_checks_sender_stock(db, head_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 3)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 5}])

    with pytest.raises(InsufficientStockError):
        TransferService.approve(db, head_actor, transfer.id, TransferApprove(action="approve"))
    db.rollback()
    assert TransferService.get_transfer(db, transfer.id).status == "draft"


def test_dispatch_shortfall_moves_nothing(db, head_actor, branches, seed):
    first, second = uuid.uuid4(), uuid.uuid4()
    seed(first, branches["head"].id, 5)
    second_key = seed(second, branches["head"].id, 5)
    transfer = _transfer(db, head_actor, branches["b2"], [
        {"productId": str(first), "quantity": 5},
        {"productId": str(second), "quantity": 5},
    ])
    TransferService.approve(db, head_actor, transfer.id, TransferApprove(action="approve"))
    db.commit()

    # Stock leaves the sender between approval and dispatch
    StockLedger.append_movement(
        db, second_key, MovementType.SALE, -3, MovementReference(ReferenceKind.SALE), head_actor.id,
    )
    db.commit()
    movements_before = db.query(StockMovement).count()

    with pytest.raises(InsufficientStockError):
        TransferService.dispatch(db, head_actor, transfer.id, TransferDispatch(action="dispatch"))
    db.rollback()

    assert db.query(StockMovement).count() == movements_before
    assert StockLedger.get_quantity(db, StockKey(first, branches["head"].id)) == 5
    assert TransferService.get_transfer(db, transfer.id).status == "approved"


def test_dispatch_is_exactly_once(db, head_actor, branches, product_id, seed):
    head_key = seed(product_id, branches["head"].id, 10)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 4}])
    _approve_and_dispatch(db, head_actor, transfer.id)

    with pytest.raises(InvalidStateTransitionError):
        TransferService.dispatch(db, head_actor, transfer.id, TransferDispatch(action="dispatch"))
    db.rollback()

    assert StockLedger.get_quantity(db, head_key) == 6
    assert len(TransferService.movements(db, transfer.id)) == 1


def test_receive_is_exactly_once(db, head_actor, b2_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 10)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 4}])
    _approve_and_dispatch(db, head_actor, transfer.id)
    TransferService.receive(db, b2_actor, transfer.id, TransferReceive(action="receive"))
    db.commit()

    with pytest.raises(InvalidStateTransitionError):
        TransferService.receive(db, b2_actor, transfer.id, TransferReceive(action="receive"))
    db.rollback()
    assert StockLedger.get_quantity(db, StockKey(product_id, branches["b2"].id)) == 4


def test_in_transit_then_receive_with_transport(db, head_actor, b2_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 10)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 2}])
    _approve_and_dispatch(db, head_actor, transfer.id, transport={"vehicleNumber": "DHA-11", "driverName": "Rahim"})

    TransferService.mark_in_transit(db, head_actor, transfer.id, TransferInTransit(
        action="in-transit", transport={"trackingId": "TRK-9"},
    ))
    db.commit()
    transfer = TransferService.get_transfer(db, transfer.id)
    assert transfer.status == "in_transit"
    assert transfer.transport == {"trackingId": "TRK-9"}

    TransferService.receive(db, b2_actor, transfer.id, TransferReceive(action="receive"))
    db.commit()
    assert TransferService.get_transfer(db, transfer.id).status == "received"


def test_cancel_only_before_dispatch(db, head_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 10)
    draft = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 1}])
    TransferService.cancel(db, head_actor, draft.id, TransferCancel(action="cancel", reason="mistake"))
    db.commit()
    assert TransferService.get_transfer(db, draft.id).status == "cancelled"

    shipped = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 1}])
    _approve_and_dispatch(db, head_actor, shipped.id)
    with pytest.raises(InvalidStateTransitionError):
        TransferService.cancel(db, head_actor, shipped.id, TransferCancel(action="cancel"))


def test_receiver_must_receive(db, head_actor, b3_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 10)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 1}])
    _approve_and_dispatch(db, head_actor, transfer.id)

    with pytest.raises(ForbiddenError):
        TransferService.receive(db, b3_actor, transfer.id, TransferReceive(action="receive"))


def test_sub_to_sub_transfer(db, b2_actor, b3_actor, branches, product_id, seed):
    seed(product_id, branches["b2"].id, 8)
    transfer = _transfer(
        db, b2_actor, branches["b3"], [{"productId": str(product_id), "quantity": 3}],
        senderBranchId=str(branches["b2"].id),
    )
    assert transfer.transfer_type == "sub_to_sub"
    _approve_and_dispatch(db, b2_actor, transfer.id)
    TransferService.receive(db, b3_actor, transfer.id, TransferReceive(action="receive"))
    db.commit()

    assert StockLedger.get_quantity(db, StockKey(product_id, branches["b2"].id)) == 5
    assert StockLedger.get_quantity(db, StockKey(product_id, branches["b3"].id)) == 3


def test_create_validation(db, head_actor, branches, product_id):
    with pytest.raises(ValidationError):
        _transfer(db, head_actor, branches["head"], [{"productId": str(product_id), "quantity": 1}])
    db.rollback()
    with pytest.raises(ValidationError):
        _transfer(db, head_actor, branches["b2"], [
            {"productId": str(product_id), "quantity": 1},
            {"productId": str(product_id), "quantity": 2},
        ])
    db.rollback()


def test_sub_branch_cannot_ship_for_another_branch(db, b3_actor, branches, product_id):
    with pytest.raises(ForbiddenError):
        TransferService.create_transfer(db, b3_actor, TransferCreate(
            sender_branch_id=branches["b2"].id,
            receiver_branch_id=branches["head"].id,
            items=[{"productId": str(product_id), "quantity": 1}],
        ))


def test_update_draft_items(db, head_actor, branches, product_id):
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 1}])
    TransferService.update_transfer(db, head_actor, transfer.id, TransferUpdate(
        items=[{"productId": str(product_id), "quantity": 7, "cartonNumber": "C-1"}],
        remarks="bigger",
    ))
    db.commit()

    transfer = TransferService.get_transfer(db, transfer.id)
    assert transfer.total_quantity == 7
    assert transfer.items[0].carton_number == "C-1"
    assert transfer.remarks == "bigger"


def test_find_by_challan_and_stats(db, head_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 10)
    transfer = _transfer(db, head_actor, branches["b2"], [{"productId": str(product_id), "quantity": 1}])
    _transfer(db, head_actor, branches["b3"], [{"productId": str(product_id), "quantity": 1}])
    _approve_and_dispatch(db, head_actor, transfer.id)

    assert TransferService.find_transfer(db, "chn-ho-000001").id == transfer.id
    with pytest.raises(NotFoundError):
        TransferService.find_transfer(db, "CHN-HO-999999")

    stats = TransferService.stats(db)
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["in_transit"] == 1
    assert TransferService.stats(db, branches["b3"].id)["total"] == 1
