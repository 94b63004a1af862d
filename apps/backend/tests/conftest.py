from __future__ import annotations

import os
import tempfile
from datetime import date
from typing import Generator, Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from finapp.core.database import Base, enable_sqlite_pragmas, get_db
from finapp.main import app
from finapp import models
from finapp.seed import seed_defaults


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # temp file SQLite so the developer database is never touched
    fd, path = tempfile.mkstemp(prefix="finapp_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_engine(test_db_url, connect_args={"check_same_thread": False})
    enable_sqlite_pragmas(eng)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # demo user(1) + shared default categories
    seed_defaults(session)
    session.commit()

    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def user(db_session) -> models.User:
    return db_session.query(models.User).filter_by(email="demo@example.com").one()


def get_category(db_session, name: str) -> models.Category:
    return db_session.query(models.Category).filter_by(name=name, is_default=True).one()


@pytest.fixture()
def rent_category(db_session) -> models.Category:
    return get_category(db_session, "Rent")


@pytest.fixture()
def salary_category(db_session) -> models.Category:
    return get_category(db_session, "Salary")


@pytest.fixture()
def bank_account(db_session, user) -> models.Account:
    acc = models.Account(user_id=user.id, bank_name="Main bank", balance=1000)
    db_session.add(acc)
    db_session.commit()
    db_session.refresh(acc)
    return acc


@pytest.fixture()
def make_fixed_account(db_session, user, rent_category):
    """Create a template through the service; returns (template, first occurrence)."""
    from finapp.services import FixedAccountService

    def _make(**overrides):
        payload = {
            "description": "Office rent",
            "amount": 300.0,
            "periodicity": models.Periodicity.MONTHLY,
            "start_date": date(2026, 1, 10),
            "category_id": rent_category.id,
        }
        payload.update(overrides)
        return FixedAccountService(db_session).create_fixed_account(payload, user_id=user.id)

    return _make
