"""
Stock request workflow: sub-branch asks, head office approves and fulfils via a transfer.
"""
import uuid

import pytest

from branchstock.exceptions import ForbiddenError, InvalidStateTransitionError, ValidationError
from branchstock.models import StockKey, StockMovement, Transfer
from branchstock.schemas.stock_request import (
    RequestApprove,
    RequestCancel,
    RequestFulfill,
    RequestReject,
    StockRequestCreate,
)
from branchstock.schemas.transfer import TransferApprove, TransferDispatch, TransferReceive
from branchstock.services.stock_ledger import StockLedger
from branchstock.services.stock_request_service import StockRequestService
from branchstock.services.transfer_service import TransferService


def _request(db, actor, items, **extra):
    request = StockRequestService.create_request(db, actor, StockRequestCreate(items=items, **extra))
    db.commit()
    return request


def test_approve_fifteen_then_fulfil_fifteen(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 20}], priority="high")
    assert request.request_number == "REQ-B2-000001"
    assert request.status == "pending"

    StockRequestService.approve(db, head_actor, request.id, RequestApprove(
        action="approve", items=[{"productId": str(product_id), "quantityApproved": 15}],
    ))
    db.commit()
    request, transfer = StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(
        action="fulfill", items=[{"productId": str(product_id), "quantity": 15, "cartonNumber": "CTN-1"}],
    ))
    db.commit()

    assert request.status == "fulfilled"
    assert request.items[0].quantity_approved == 15
    assert request.items[0].quantity_fulfilled == 15
    assert request.transfer_id == transfer.id
    assert transfer.status == "draft"
    assert transfer.sender_branch_id == branches["head"].id
    assert transfer.receiver_branch_id == branches["b2"].id
    assert transfer.stock_request_id == request.id
    assert [(i.product_id, i.quantity, i.carton_number) for i in transfer.items] == [(product_id, 15, "CTN-1")]
    # Nothing moves until the transfer ships
    assert db.query(StockMovement).count() == 0


def test_fulfil_defaults_to_approved_quantities(db, head_actor, b2_actor, branches):
    first, second = uuid.uuid4(), uuid.uuid4()
    request = _request(db, b2_actor, [
        {"productId": str(first), "quantity": 5},
        {"productId": str(second), "quantity": 8},
    ])
    StockRequestService.approve(db, head_actor, request.id, RequestApprove(
        action="approve", items=[{"productId": str(second), "quantity_approved": 0}],
    ))
    request, transfer = StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(action="fulfill"))
    db.commit()

    assert request.total_approved == 5
    assert [(i.product_id, i.quantity) for i in transfer.items] == [(first, 5)]
    assert request.status == "fulfilled"


def test_partial_fulfilment(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 10}])
    StockRequestService.approve(db, head_actor, request.id, RequestApprove(action="approve"))
    request, transfer = StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(
        action="fulfill", items=[{"productId": str(product_id), "quantity": 4}],
    ))
    db.commit()

    assert request.status == "partial_fulfilled"
    assert request.total_fulfilled == 4
    assert transfer.total_quantity == 4


def test_fulfil_twice_rejected(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 3}])
    StockRequestService.approve(db, head_actor, request.id, RequestApprove(action="approve"))
    StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(action="fulfill"))
    db.commit()

    with pytest.raises(InvalidStateTransitionError):
        StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(action="fulfill"))
    db.rollback()
    assert db.query(Transfer).count() == 1


def test_fulfil_more_than_approved_rejected(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 10}])
    StockRequestService.approve(db, head_actor, request.id, RequestApprove(
        action="approve", items=[{"productId": str(product_id), "approvedQuantity": 6}],
    ))
    db.commit()

    with pytest.raises(ValidationError):
        StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(
            action="fulfill", items=[{"productId": str(product_id), "quantity": 7}],
        ))


def test_fulfil_with_nothing_rejected(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 10}])
    StockRequestService.approve(db, head_actor, request.id, RequestApprove(action="approve"))
    db.commit()

    with pytest.raises(ValidationError):
        StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(
            action="fulfill", items=[{"productId": str(product_id), "quantity": 0}],
        ))


def test_approval_rules(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 5}])

    with pytest.raises(ValidationError):
        StockRequestService.approve(db, head_actor, request.id, RequestApprove(
            action="approve", items=[{"productId": str(product_id), "quantityApproved": 6}],
        ))
    with pytest.raises(ValidationError):
        StockRequestService.approve(db, head_actor, request.id, RequestApprove(
            action="approve", items=[{"productId": str(product_id), "quantityApproved": 0}],
        ))
    with pytest.raises(ValidationError):
        StockRequestService.approve(db, head_actor, request.id, RequestApprove(
            action="approve", items=[{"productId": str(uuid.uuid4()), "quantityApproved": 1}],
        ))
    with pytest.raises(ForbiddenError):
        StockRequestService.approve(db, b2_actor, request.id, RequestApprove(action="approve"))


def test_repeated_override_lines_rejected(db, head_actor, b2_actor, branches, product_id):
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 10}])

    with pytest.raises(ValidationError):
        StockRequestService.approve(db, head_actor, request.id, RequestApprove(action="approve", items=[
            {"productId": str(product_id), "quantityApproved": 2},
            {"productId": str(product_id), "quantityApproved": 8},
        ]))
    db.rollback()

    StockRequestService.approve(db, head_actor, request.id, RequestApprove(action="approve"))
    db.commit()
    with pytest.raises(ValidationError):
        StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(action="fulfill", items=[
            {"productId": str(product_id), "quantity": 3},
            {"productId": str(product_id), "quantity": 4},
        ]))
    db.rollback()
    assert StockRequestService.get_request(db, request.id).status == "approved"


def test_reject_and_cancel(db, head_actor, b2_actor, branches, product_id):
    rejected = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 5}])
    StockRequestService.reject(db, head_actor, rejected.id, RequestReject(action="reject", reason="  no stock "))
    db.commit()
    rejected = StockRequestService.get_request(db, rejected.id)
    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "no stock"

    with pytest.raises(InvalidStateTransitionError):
        StockRequestService.approve(db, head_actor, rejected.id, RequestApprove(action="approve"))

    cancelled = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 5}])
    StockRequestService.cancel(db, b2_actor, cancelled.id, RequestCancel(action="cancel"))
    db.commit()
    assert StockRequestService.get_request(db, cancelled.id).status == "cancelled"


def test_reject_needs_reason():
    with pytest.raises(ValueError):
        RequestReject(action="reject", reason="   ")


def test_only_sub_branches_request(db, head_actor, b3_actor, branches, product_id):
    with pytest.raises(ForbiddenError):
        _request(db, head_actor, [{"productId": str(product_id), "quantity": 5}])
    with pytest.raises(ForbiddenError):
        _request(db, b3_actor, [{"productId": str(product_id), "quantity": 5}], requestingBranchId=str(branches["b2"].id))


def test_duplicate_lines_rejected(db, b2_actor, branches, product_id):
    with pytest.raises(ValidationError):
        _request(db, b2_actor, [
            {"productId": str(product_id), "quantity": 1},
            {"productId": str(product_id), "quantity": 2},
        ])


def test_fulfilled_transfer_delivers_stock(db, head_actor, b2_actor, branches, product_id, seed):
    seed(product_id, branches["head"].id, 30)
    request = _request(db, b2_actor, [{"productId": str(product_id), "quantity": 12}])
    StockRequestService.approve(db, head_actor, request.id, RequestApprove(action="approve"))
    _, transfer = StockRequestService.fulfill(db, head_actor, request.id, RequestFulfill(
        action="fulfill", transport={"vehicleNumber": "V-1"},
    ))
    db.commit()
    assert transfer.transport == {"vehicleNumber": "V-1"}

    TransferService.approve(db, head_actor, transfer.id, TransferApprove(action="approve"))
    TransferService.dispatch(db, head_actor, transfer.id, TransferDispatch(action="dispatch"))
    TransferService.receive(db, b2_actor, transfer.id, TransferReceive(action="receive"))
    db.commit()

    assert StockLedger.get_quantity(db, StockKey(product_id, branches["head"].id)) == 18
    assert StockLedger.get_quantity(db, StockKey(product_id, branches["b2"].id)) == 12
