"""
Shared fixtures: in-memory SQLite schema, seeded branches, actors and an API client.
"""
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FINANCE_API_URL", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from branchstock.database import create_tables, get_db
from branchstock.models import MovementReference, StockKey
from branchstock.models.enums import BranchRole, MovementType, ReferenceKind
from branchstock.services.branch_service import BranchService
from branchstock.services.policy import Actor
from branchstock.services.stock_ledger import StockLedger
from branchstock.utils.auth_internal import create_access_token


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def branches(db):
    """Head office HO plus sub-branches B2 and B3."""
    head = BranchService.create_branch(db, "HO", "Head Office", role=BranchRole.HEAD_OFFICE.value, type="warehouse")
    b2 = BranchService.create_branch(db, "B2", "Branch Two")
    b3 = BranchService.create_branch(db, "B3", "Branch Three", type="outlet")
    db.commit()
    return {"head": head, "b2": b2, "b3": b3}


@pytest.fixture
def head_actor(branches):
    return Actor(id=uuid.uuid4(), branch_id=branches["head"].id, role=BranchRole.HEAD_OFFICE)


@pytest.fixture
def b2_actor(branches):
    return Actor(id=uuid.uuid4(), branch_id=branches["b2"].id, role=BranchRole.SUB_BRANCH)


@pytest.fixture
def b3_actor(branches):
    return Actor(id=uuid.uuid4(), branch_id=branches["b3"].id, role=BranchRole.SUB_BRANCH)


@pytest.fixture
def product_id():
    return uuid.uuid4()


@pytest.fixture
def seed(db, head_actor):
    """seed(product_id, branch_id, quantity, variant_sku=None) posts an initial movement and commits."""

    def _seed(product_id, branch_id, quantity, variant_sku=None):
        key = StockKey(product_id, branch_id, variant_sku)
        StockLedger.append_movement(
            db, key, MovementType.INITIAL, quantity,
            MovementReference(ReferenceKind.INITIAL), head_actor.id,
        )
        db.commit()
        return key

    return _seed


@pytest.fixture
def client(session_factory, branches):
    from branchstock.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(actor.id), str(actor.branch_id))}"}


@pytest.fixture
def head_headers(head_actor):
    return auth_headers(head_actor)


@pytest.fixture
def b2_headers(b2_actor):
    return auth_headers(b2_actor)
