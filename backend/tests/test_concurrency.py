"""
Two sessions against one file database: stale writes surface as ConflictError.
"""
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from branchstock.database import create_tables
from branchstock.exceptions import ConflictError
from branchstock.models import MovementReference, StockKey, StockMovement
from branchstock.models.enums import BranchRole, MovementType, ReferenceKind
from branchstock.services.branch_service import BranchService
from branchstock.services.stock_ledger import StockLedger


@pytest.fixture
def sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    create_tables(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = factory(), factory()
    yield first, second
    first.close()
    second.close()
    engine.dispose()


@pytest.fixture
def key(sessions):
    first, _ = sessions
    branch = BranchService.create_branch(first, "HO", "Head Office", role=BranchRole.HEAD_OFFICE.value)
    key = StockKey(uuid.uuid4(), branch.id)
    StockLedger.append_movement(
        first, key, MovementType.INITIAL, 10, MovementReference(ReferenceKind.INITIAL), uuid.uuid4(),
    )
    first.commit()
    return key


def _sale(db, key, quantity):
    return StockLedger.append_movement(
        db, key, MovementType.SALE, -quantity, MovementReference(ReferenceKind.SALE), uuid.uuid4(),
    )


def test_stale_entry_write_is_a_conflict(sessions, key):
    first, second = sessions
    entry = StockLedger.get_entry(first, key)
    version = entry.version

    _sale(second, key, 3)
    second.commit()

    with pytest.raises(ConflictError):
        StockLedger.set_reorder_levels(first, entry.id, 2)
    first.rollback()

    fresh = StockLedger.get_entry(first, key)
    assert fresh.version > version
    assert fresh.quantity == 7
    assert fresh.reorder_point is None


def test_appends_from_two_sessions_serialize(sessions, key):
    first, second = sessions

    _sale(first, key, 2)
    first.commit()
    _sale(second, key, 5)
    second.commit()

    movements = first.query(StockMovement).order_by(StockMovement.sequence).all()
    assert [m.sequence for m in movements] == [1, 2, 3]
    assert [m.balance_after for m in movements] == [10, 8, 3]
    assert StockLedger.replay(first, key).consistent
