"""
Stock adjustments API routes
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from branchstock.database import atomic
from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.schemas.adjustment import AdjustmentCreate, AdjustmentResponse
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.services.adjustment_service import AdjustmentService
from branchstock.services.policy import Actor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/adjustments", status_code=status.HTTP_201_CREATED)
def create_adjustment(
    data: AdjustmentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Apply one line or a bulk list (all-or-nothing).

    When ``lostAmount`` is set the expense is posted after the stock commit; a
    finance failure leaves the adjustment in place and comes back as the
    response message.
    """
    with atomic(db):
        adjustment = AdjustmentService.create_adjustment(db, actor, data)
    adjustment_id = adjustment.id

    warning = None
    if adjustment.lost_amount:
        with atomic(db):
            warning = AdjustmentService.post_loss(db, adjustment_id)

    adjustment = AdjustmentService.get_adjustment(db, adjustment_id)
    return ok(dump(AdjustmentResponse.model_validate(adjustment)), warning or "Stock adjusted")


@router.get("/adjustments")
def list_adjustments(
    branch_id: Optional[UUID] = Query(None, alias="branchId"),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    adjustments, total = AdjustmentService.list_adjustments(db, branch_id, paging.page, paging.limit)
    return paginated(dump_all(AdjustmentResponse, adjustments), paging.page, paging.limit, total)


@router.get("/adjustments/{adjustment_id}")
def get_adjustment(
    adjustment_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump(AdjustmentResponse.model_validate(AdjustmentService.get_adjustment(db, adjustment_id))))
