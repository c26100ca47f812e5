"""
Purchases API routes (head office stock intake)
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from branchstock.database import atomic
from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.schemas.purchase import PurchaseAction, PurchaseCreate, PurchaseResponse, PurchaseUpdate
from branchstock.services.policy import Actor
from branchstock.services.purchase_service import PurchaseService

router = APIRouter()


@router.get("/purchases")
def list_purchases(
    branch_id: Optional[UUID] = Query(None, alias="branchId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    supplier_id: Optional[UUID] = Query(None, alias="supplierId"),
    search: Optional[str] = Query(None),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    purchases, total = PurchaseService.list_purchases(
        db,
        branch_id=branch_id,
        status=status_filter,
        payment_status=payment_status,
        supplier_id=supplier_id,
        search=search,
        page=paging.page,
        limit=paging.limit,
    )
    return paginated(dump_all(PurchaseResponse, purchases), paging.page, paging.limit, total)


@router.post("/purchases", status_code=status.HTTP_201_CREATED)
def create_purchase(
    data: PurchaseCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Create a purchase; autoApprove / autoReceive run the transitions in the same transaction."""
    with atomic(db):
        purchase = PurchaseService.create_purchase(db, actor, data)
    return ok(dump(PurchaseResponse.model_validate(purchase)), "Purchase created")


@router.get("/purchases/{purchase_id}")
def get_purchase(
    purchase_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    purchase = PurchaseService.get_purchase(db, purchase_id)
    return ok(dump(PurchaseResponse.model_validate(purchase)))


@router.patch("/purchases/{purchase_id}")
def update_purchase(
    purchase_id: UUID,
    data: PurchaseUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with atomic(db):
        purchase = PurchaseService.update_purchase(db, actor, purchase_id, data)
    return ok(dump(PurchaseResponse.model_validate(purchase)), "Purchase updated")


@router.post("/purchases/{purchase_id}/action")
def purchase_action(
    purchase_id: UUID,
    payload: PurchaseAction,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Body: {action: approve|receive|pay|cancel, ...}"""
    with atomic(db):
        purchase = PurchaseService.perform_action(db, actor, purchase_id, payload)
    return ok(dump(PurchaseResponse.model_validate(purchase)), f"Purchase {payload.action} completed")
