from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from staffsync.db.base import Base
from staffsync.db.dependencies import get_db_session
import staffsync.models.entities  # noqa: F401
from staffsync.main import create_app

from fakes import FakeAssignmentStore, FakeStatusPersistence


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def store_app(db_session: Session) -> Generator[FastAPI, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def client(store_app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(store_app) as test_client:
        yield test_client


@pytest.fixture()
def store() -> FakeAssignmentStore:
    return FakeAssignmentStore()


@pytest.fixture()
def persistence() -> FakeStatusPersistence:
    return FakeStatusPersistence()
