"""
Stock movements API routes (read-only ledger)
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.schemas.inventory import StockMovementResponse
from branchstock.services.policy import Actor
from branchstock.services.stock_ledger import MovementFilter, StockLedger

router = APIRouter()


@router.get("/movements")
def list_movements(
    product_id: Optional[UUID] = Query(None, alias="productId"),
    variant_sku: Optional[str] = Query(None, alias="variantSku"),
    branch_id: Optional[UUID] = Query(None, alias="branchId"),
    movement_type: Optional[str] = Query(None, alias="type"),
    reference_type: Optional[str] = Query(None, alias="referenceType"),
    reference_id: Optional[UUID] = Query(None, alias="referenceId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    after: Optional[UUID] = Query(None, description="Cursor: id of the last movement already seen"),
    cursor: bool = Query(False, description="Start cursor paging from the first movement"),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    List movements. Product + branch filters return replay order (oldest
    first); anything else is newest first.

    With ``after`` (or ``cursor=true`` for the first page) the response
    carries ``nextCursor`` instead of page counts.
    """
    filters = MovementFilter(
        product_id=product_id,
        variant_sku=variant_sku.strip() if variant_sku is not None else None,
        branch_id=branch_id,
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=reference_id,
        start_date=start_date,
        end_date=end_date,
    )
    if after is not None or cursor:
        movements, next_cursor = StockLedger.movements_after(db, filters, after, paging.limit)
        body = ok(dump_all(StockMovementResponse, movements))
        body["nextCursor"] = str(next_cursor) if next_cursor else None
        return body

    movements, total = StockLedger.list_movements(db, filters, paging.page, paging.limit)
    return paginated(dump_all(StockMovementResponse, movements), paging.page, paging.limit, total)


@router.get("/movements/{movement_id}")
def get_movement(
    movement_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump(StockMovementResponse.model_validate(StockLedger.get_movement(db, movement_id))))
