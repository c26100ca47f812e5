"""
Stock requests API routes
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from branchstock.database import atomic
from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.schemas.stock_request import (
    RequestFulfill,
    StockRequestAction,
    StockRequestCreate,
    StockRequestResponse,
)
from branchstock.schemas.transfer import TransferResponse
from branchstock.services.policy import Actor
from branchstock.services.stock_request_service import StockRequestService

router = APIRouter()


@router.get("/requests")
def list_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    requesting_branch_id: Optional[UUID] = Query(None, alias="requestingBranchId"),
    search: Optional[str] = Query(None),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    requests, total = StockRequestService.list_requests(
        db,
        status=status_filter,
        priority=priority,
        requesting_branch_id=requesting_branch_id,
        search=search,
        page=paging.page,
        limit=paging.limit,
    )
    return paginated(dump_all(StockRequestResponse, requests), paging.page, paging.limit, total)


@router.post("/requests", status_code=status.HTTP_201_CREATED)
def create_request(
    data: StockRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with atomic(db):
        request = StockRequestService.create_request(db, actor, data)
    return ok(dump(StockRequestResponse.model_validate(request)), "Stock request created")


@router.get("/requests/{request_id}")
def get_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    request = StockRequestService.get_request(db, request_id)
    return ok(dump(StockRequestResponse.model_validate(request)))


@router.post("/requests/{request_id}/action")
def request_action(
    request_id: UUID,
    payload: StockRequestAction,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Body: {action: approve|reject|fulfill|cancel, ...}

    fulfill also returns the created transfer under ``data.transfer``.
    """
    with atomic(db):
        result = StockRequestService.perform_action(db, actor, request_id, payload)

    if isinstance(payload, RequestFulfill):
        request, transfer = result
        data = dump(StockRequestResponse.model_validate(request))
        data["transfer"] = dump(TransferResponse.model_validate(transfer))
        return ok(data, f"Stock request fulfilled via {transfer.challan_number}")
    return ok(dump(StockRequestResponse.model_validate(result)), f"Stock request {payload.action} completed")
