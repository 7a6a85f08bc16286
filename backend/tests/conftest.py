"""Shared pytest fixtures.

Provides reusable test fixtures for:
- A local storage configuration rooted in a temporary directory
- SQLite database engine and sessions (one database file per test)
- Principals for each role
- A FastAPI TestClient wired to the temporary database and storage

Usage:
    def test_create_thesis(api_client, auth_headers, student):
        response = api_client.post("/api/v1/theses", json={...}, headers=auth_headers(student))
        assert response.status_code == 201
"""

from pathlib import Path
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from thesisrepo.audit.service import AuditEvent, AuditSink, LoggingAuditSink, set_audit_sink
from thesisrepo.auth.roles import Principal, UserRole
from thesisrepo.config import Settings
from thesisrepo.database import build_engine, get_db, init_db
from thesisrepo.infrastructure.storage.router import StorageRouter
from thesisrepo.infrastructure.storage.storage_config import StorageBackendType, StorageConfig
from thesisrepo.main import create_app


def gateway_headers(principal: Principal) -> dict:
    """Headers the upstream gateway sends for ``principal``."""
    headers = {"X-User-Id": principal.user_id, "X-User-Role": principal.role.value}
    if principal.department:
        headers["X-User-Department"] = principal.department
    return headers


class RecordingAuditSink(AuditSink):
    """Keeps audit events in memory."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[str]:
        return [e.action for e in self.events]


# Principals

@pytest.fixture
def auth_headers():
    return gateway_headers


@pytest.fixture
def student() -> Principal:
    return Principal(user_id="alice", role=UserRole.STUDENT, department="CS")


@pytest.fixture
def co_author() -> Principal:
    return Principal(user_id="dave", role=UserRole.STUDENT, department="CS")


@pytest.fixture
def adviser() -> Principal:
    return Principal(user_id="bob", role=UserRole.ADVISER, department="CS")


@pytest.fixture
def other_department_adviser() -> Principal:
    return Principal(user_id="ivan", role=UserRole.FACULTY, department="IT")


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="carol", role=UserRole.ADMIN, department=None)


# Storage

@pytest.fixture
def uploads_root(tmp_path: Path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def storage_config(uploads_root: Path) -> StorageConfig:
    return StorageConfig(
        backend_type=StorageBackendType.LOCAL,
        uploads_root=uploads_root,
        staging_dir=uploads_root / ".staging",
    )


@pytest.fixture
def storage_router(storage_config: StorageConfig) -> StorageRouter:
    return StorageRouter(storage_config)


# Database

@pytest.fixture
def db_engine(tmp_path: Path):
    engine = build_engine(f"sqlite:///{tmp_path / 'thesis.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# Audit

@pytest.fixture
def audit_sink() -> Generator[RecordingAuditSink, None, None]:
    sink = RecordingAuditSink()
    set_audit_sink(sink)
    yield sink
    set_audit_sink(LoggingAuditSink())


# HTTP

@pytest.fixture
def test_settings(uploads_root: Path) -> Settings:
    return Settings(
        STORAGE_TYPE="local",
        UPLOADS_ROOT=str(uploads_root),
        STAGING_DIR=str(uploads_root / ".staging"),
        MAX_SUPPLEMENTARY_FILES=3,
        LOG_JSON=False,
    )


@pytest.fixture
def api_client(test_settings, storage_router, session_factory) -> Generator[TestClient, None, None]:
    app = create_app(settings=test_settings, storage=storage_router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
