"""
Supplier directory.
"""
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from branchstock.exceptions import NotFoundError, ValidationError
from branchstock.models import Supplier
from branchstock.schemas.directory import SupplierCreate, SupplierUpdate

logger = logging.getLogger(__name__)

CODE_PREFIX = "SUP-"


class SupplierService:
    """Service for suppliers"""

    @staticmethod
    def get_supplier(db: Session, supplier_id: UUID) -> Supplier:
        supplier = db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    @staticmethod
    def next_code(db: Session) -> str:
        """SUP-0001, SUP-0002, ... (one past the highest generated code)."""
        codes = db.query(Supplier.code).filter(Supplier.code.like(f"{CODE_PREFIX}%")).all()
        highest = 0
        for (code,) in codes:
            suffix = code[len(CODE_PREFIX):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{CODE_PREFIX}{highest + 1:04d}"

    @staticmethod
    def create_supplier(db: Session, data: SupplierCreate) -> Supplier:
        code = (data.code or "").strip().upper() or SupplierService.next_code(db)
        if db.query(Supplier.id).filter(Supplier.code == code).first():
            raise ValidationError(f"Supplier code {code} already exists", {"code": code})

        values = data.model_dump(exclude={"code"})
        values["type"] = data.type.value
        values["payment_terms"] = data.payment_terms.value
        supplier = Supplier(code=code, **values)
        db.add(supplier)
        db.flush()
        logger.info("Supplier %s created (%s)", supplier.code, supplier.name)
        return supplier

    @staticmethod
    def update_supplier(db: Session, supplier_id: UUID, data: SupplierUpdate) -> Supplier:
        supplier = SupplierService.get_supplier(db, supplier_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in ("type", "payment_terms") and value is not None:
                value = value.value
            setattr(supplier, field, value)
        db.flush()
        return supplier

    @staticmethod
    def list_suppliers(
        db: Session,
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Supplier], int]:
        query = db.query(Supplier)
        if not include_inactive:
            query = query.filter(Supplier.is_active.is_(True))
        if search:
            term = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Supplier.name).like(term),
                func.lower(Supplier.code).like(term),
            ))
        total = query.count()
        items = query.order_by(Supplier.name.asc()).offset((page - 1) * limit).limit(limit).all()
        return items, total
