"""
Transfers (challans) API routes
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from branchstock.database import atomic
from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.schemas.inventory import StockMovementResponse
from branchstock.schemas.transfer import (
    TransferAction,
    TransferCreate,
    TransferResponse,
    TransferStats,
    TransferUpdate,
)
from branchstock.services.policy import Actor
from branchstock.services.transfer_service import TransferService

router = APIRouter()


@router.get("/transfers")
def list_transfers(
    status_filter: Optional[str] = Query(None, alias="status"),
    sender_branch_id: Optional[UUID] = Query(None, alias="senderBranchId"),
    receiver_branch_id: Optional[UUID] = Query(None, alias="receiverBranchId"),
    branch_id: Optional[UUID] = Query(None, alias="branchId", description="Sender or receiver"),
    transfer_type: Optional[str] = Query(None, alias="transferType"),
    stock_request_id: Optional[UUID] = Query(None, alias="stockRequestId"),
    search: Optional[str] = Query(None),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    transfers, total = TransferService.list_transfers(
        db,
        status=status_filter,
        sender_branch_id=sender_branch_id,
        receiver_branch_id=receiver_branch_id,
        branch_id=branch_id,
        transfer_type=transfer_type,
        stock_request_id=stock_request_id,
        search=search,
        page=paging.page,
        limit=paging.limit,
    )
    return paginated(dump_all(TransferResponse, transfers), paging.page, paging.limit, total)


@router.post("/transfers", status_code=status.HTTP_201_CREATED)
def create_transfer(
    data: TransferCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with atomic(db):
        transfer = TransferService.create_transfer(db, actor, data)
    return ok(dump(TransferResponse.model_validate(transfer)), "Transfer created")


@router.get("/transfers/stats")
def transfer_stats(
    branch_id: Optional[UUID] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump(TransferStats.model_validate(TransferService.stats(db, branch_id))))


@router.get("/transfers/{identifier}")
def get_transfer(
    identifier: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Look up by id or challan number."""
    transfer = TransferService.find_transfer(db, identifier)
    return ok(dump(TransferResponse.model_validate(transfer)))


@router.patch("/transfers/{transfer_id}")
def update_transfer(
    transfer_id: UUID,
    data: TransferUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with atomic(db):
        transfer = TransferService.update_transfer(db, actor, transfer_id, data)
    return ok(dump(TransferResponse.model_validate(transfer)), "Transfer updated")


@router.post("/transfers/{transfer_id}/action")
def transfer_action(
    transfer_id: UUID,
    payload: TransferAction,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Body: {action: approve|dispatch|in-transit|receive|cancel, ...}"""
    with atomic(db):
        transfer = TransferService.perform_action(db, actor, transfer_id, payload)
    return ok(dump(TransferResponse.model_validate(transfer)), f"Transfer {payload.action} completed")


@router.get("/transfers/{transfer_id}/movements")
def transfer_movements(
    transfer_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump_all(StockMovementResponse, TransferService.movements(db, transfer_id)))
