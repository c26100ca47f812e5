"""
Branch and supplier schemas
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from branchstock.models.enums import BranchRole, BranchType, PaymentTerms, SupplierType
from branchstock.schemas.common import CamelModel


class BranchResponse(CamelModel):
    id: UUID
    code: str
    name: str
    role: BranchRole
    type: BranchType
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    is_head_office: bool
    created_at: Optional[datetime] = None


class SupplierBase(CamelModel):
    """Supplier base schema"""
    name: str = Field(..., min_length=1, max_length=255, description="Supplier name")
    type: SupplierType = SupplierType.LOCAL
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    payment_terms: PaymentTerms = PaymentTerms.CASH
    credit_days: int = Field(0, ge=0)
    notes: Optional[str] = None


class SupplierCreate(SupplierBase):
    """Create supplier request; code is generated when omitted"""
    code: Optional[str] = Field(None, max_length=50)


class SupplierUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[SupplierType] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    payment_terms: Optional[PaymentTerms] = None
    credit_days: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class SupplierResponse(CamelModel):
    """Supplier response"""
    id: UUID
    code: str
    name: str
    type: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    payment_terms: str
    credit_days: int
    notes: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
