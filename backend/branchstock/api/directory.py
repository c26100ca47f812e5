"""
Branch and supplier directory API routes
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from branchstock.database import atomic
from branchstock.dependencies import PageParams, get_current_actor, get_db, page_params
from branchstock.schemas.common import dump, dump_all, ok, paginated
from branchstock.schemas.directory import BranchResponse, SupplierCreate, SupplierResponse, SupplierUpdate
from branchstock.services.branch_service import BranchService
from branchstock.services.policy import Actor
from branchstock.services.supplier_service import SupplierService

router = APIRouter()


@router.get("/branches")
def list_branches(
    role: Optional[str] = Query(None),
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump_all(BranchResponse, BranchService.list_branches(db, role, include_inactive)))


@router.get("/branches/{branch_id}")
def get_branch(
    branch_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump(BranchResponse.model_validate(BranchService.get_branch(db, branch_id))))


@router.get("/suppliers")
def list_suppliers(
    search: Optional[str] = Query(None),
    include_inactive: bool = Query(False, alias="includeInactive"),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    suppliers, total = SupplierService.list_suppliers(db, search, include_inactive, paging.page, paging.limit)
    return paginated(dump_all(SupplierResponse, suppliers), paging.page, paging.limit, total)


@router.post("/suppliers", status_code=status.HTTP_201_CREATED)
def create_supplier(
    data: SupplierCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with atomic(db):
        supplier = SupplierService.create_supplier(db, data)
    return ok(dump(SupplierResponse.model_validate(supplier)), "Supplier created")


@router.get("/suppliers/{supplier_id}")
def get_supplier(
    supplier_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ok(dump(SupplierResponse.model_validate(SupplierService.get_supplier(db, supplier_id))))


@router.patch("/suppliers/{supplier_id}")
def update_supplier(
    supplier_id: UUID,
    data: SupplierUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with atomic(db):
        supplier = SupplierService.update_supplier(db, supplier_id, data)
    return ok(dump(SupplierResponse.model_validate(supplier)), "Supplier updated")
