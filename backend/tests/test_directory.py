"""
Branch directory, supplier codes and document numbering.
"""
import pytest

from branchstock.exceptions import ValidationError
from branchstock.models.enums import TransferType
from branchstock.schemas.directory import SupplierCreate, SupplierUpdate
from branchstock.services.branch_service import BranchService
from branchstock.services.document_service import DocumentService
from branchstock.services.supplier_service import SupplierService


def test_head_office_lookup(db, branches):
    assert BranchService.head_office(db).id == branches["head"].id
    assert [b.code for b in BranchService.list_branches(db, role="sub_branch")] == ["B2", "B3"]


def test_create_branch_validation(db, branches):
    with pytest.raises(ValidationError):
        BranchService.create_branch(db, "b2", "Duplicate")
    with pytest.raises(ValidationError):
        BranchService.create_branch(db, "B9", "Bad role", role="regional")


def test_inactive_branch_rejected(db, branches):
    branches["b3"].is_active = False
    db.commit()
    with pytest.raises(ValidationError):
        BranchService.get_active_branch(db, branches["b3"].id)
    assert "B3" not in [b.code for b in BranchService.list_branches(db)]


def test_transfer_type(branches):
    head, b2, b3 = branches["head"], branches["b2"], branches["b3"]
    assert BranchService.transfer_type(head, b2) == TransferType.HEAD_TO_SUB.value
    assert BranchService.transfer_type(b2, head) == TransferType.SUB_TO_HEAD.value
    assert BranchService.transfer_type(b2, b3) == TransferType.SUB_TO_SUB.value


def test_document_numbers_are_per_branch_and_type(db, branches):
    head, b2 = branches["head"].id, branches["b2"].id
    assert DocumentService.get_challan_number(db, head) == "CHN-HO-000001"
    assert DocumentService.get_challan_number(db, head) == "CHN-HO-000002"
    assert DocumentService.get_challan_number(db, b2) == "CHN-B2-000001"
    assert DocumentService.get_purchase_number(db, head) == "PUR-HO-000001"
    with pytest.raises(ValidationError):
        DocumentService.get_next_document_number(db, head, "invoice")


def test_supplier_codes(db):
    first = SupplierService.create_supplier(db, SupplierCreate(name="Alpha Traders"))
    second = SupplierService.create_supplier(db, SupplierCreate(name="Beta Imports", type="import"))
    custom = SupplierService.create_supplier(db, SupplierCreate(name="Gamma", code="gam-1"))
    db.commit()

    assert (first.code, second.code, custom.code) == ("SUP-0001", "SUP-0002", "GAM-1")
    with pytest.raises(ValidationError):
        SupplierService.create_supplier(db, SupplierCreate(name="Again", code="SUP-0001"))


def test_supplier_update_and_search(db):
    supplier = SupplierService.create_supplier(db, SupplierCreate(name="Alpha Traders", email="ops@alphatraders.com"))
    SupplierService.update_supplier(db, supplier.id, SupplierUpdate(paymentTerms="credit", creditDays=15))
    db.commit()

    supplier = SupplierService.get_supplier(db, supplier.id)
    assert supplier.payment_terms == "credit"
    assert supplier.credit_days == 15

    found, total = SupplierService.list_suppliers(db, search="alpha")
    assert total == 1
    assert found[0].id == supplier.id
