"""
Stock entries API routes (per-branch balance cache)
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from branchstock.database import atomic
from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.exceptions import NotFoundError
from branchstock.models import StockEntry
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.schemas.inventory import ReorderLevelsUpdate, StockEntryResponse
from branchstock.services import policy
from branchstock.services.branch_service import BranchService
from branchstock.services.policy import Actor
from branchstock.services.stock_ledger import StockLedger

router = APIRouter()


@router.get("/stock")
def list_stock(
    branch_id: Optional[UUID] = Query(None, alias="branchId"),
    product_id: Optional[UUID] = Query(None, alias="productId"),
    variant_sku: Optional[str] = Query(None, alias="variantSku"),
    low_stock: bool = Query(False, alias="lowStock"),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    entries, total = StockLedger.list_entries(
        db,
        branch_id=branch_id,
        product_id=product_id,
        variant_sku=variant_sku,
        low_stock_only=low_stock,
        page=paging.page,
        limit=paging.limit,
    )
    return paginated(dump_all(StockEntryResponse, entries), paging.page, paging.limit, total)


@router.get("/stock/low-stock")
def low_stock(
    branch_id: Optional[UUID] = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Entries at or below their reorder point."""
    return ok(dump_all(StockEntryResponse, StockLedger.low_stock(db, branch_id)))


@router.get("/stock/{entry_id}")
def get_stock_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    entry = db.get(StockEntry, entry_id)
    if entry is None:
        raise NotFoundError("StockEntry", entry_id)
    return ok(dump(StockEntryResponse.model_validate(entry)))


@router.patch("/stock/{entry_id}")
def update_reorder_levels(
    entry_id: UUID,
    data: ReorderLevelsUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Reorder point / quantity only. Quantities change through movements."""
    entry = db.get(StockEntry, entry_id)
    if entry is None:
        raise NotFoundError("StockEntry", entry_id)
    policy.enforce(actor, BranchService.get_branch(db, entry.branch_id), "adjustment", "set")
    with atomic(db):
        entry = StockLedger.set_reorder_levels(db, entry_id, data.reorder_point, data.reorder_quantity)
    return ok(dump(StockEntryResponse.model_validate(entry)), "Reorder levels updated")
