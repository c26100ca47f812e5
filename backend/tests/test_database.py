"""
Engine construction and the transaction boundary.
"""
import threading

import pytest
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from branchstock.database import atomic, build_engine, create_tables
from branchstock.models import Branch
from branchstock.services.branch_service import BranchService


def test_sqlite_engine_is_usable_across_threads(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'threads.db'}")
    results = []

    def query():
        with engine.connect() as conn:
            results.append(conn.execute(text("SELECT 1")).scalar())

    worker = threading.Thread(target=query)
    worker.start()
    worker.join()
    engine.dispose()

    assert results == [1]


def test_atomic_rolls_back_on_error(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'atomic.db'}")
    create_tables(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()

    with pytest.raises(RuntimeError):
        with atomic(db):
            BranchService.create_branch(db, "HO", "Head Office", role="head_office")
            raise RuntimeError("boom")
    assert db.query(Branch).count() == 0

    with atomic(db):
        BranchService.create_branch(db, "HO", "Head Office", role="head_office")
    assert db.query(Branch).count() == 1

    db.close()
    engine.dispose()
