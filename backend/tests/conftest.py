"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, enable_sqlite_foreign_keys, get_db
from main import app
from api.sync import get_sync_service as get_sync_service_for_sync
from integrations.provider_profiles import BROKERAGE_PROFILE
from services.sync_service import SyncService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    account,
    connection,
    linked_provider_account,
    provider_account,
    security,
)
from tests.fixtures.mocks import (
    MockProviderClient,
    MockSecurityResolver,
    MockWorkQueue,
    make_registry,
)


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mock_client() -> MockProviderClient:
    """Provider client with no accounts; tests replace its data as needed."""
    return MockProviderClient()


@pytest.fixture
def work_queue() -> MockWorkQueue:
    return MockWorkQueue()


@pytest.fixture
def sync_service(mock_client, work_queue) -> SyncService:
    """SyncService wired to the mock client, resolver and queue."""
    return SyncService(
        provider_registry=make_registry(mock_client, BROKERAGE_PROFILE),
        security_resolver=MockSecurityResolver(),
        work_queue=work_queue,
    )


@pytest.fixture(name="client")
def client_fixture(db, sync_service):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_sync_service():
        return sync_service

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_service_for_sync] = override_get_sync_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
