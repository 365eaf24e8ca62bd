"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test
- Tenants with one user per role (see factories.py)
- Fake identity provider and issue tracker (see fakes.py)
- HTTPX AsyncClient with bearer token and CSRF header
"""
import os
from typing import AsyncGenerator, Generator

# Rate limiting off, memory storage
os.environ["TESTING"] = "1"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

from app.main import app
from app.core.deps import (
    get_ai_provider,
    get_database,
    get_identity_provider,
    get_issue_tracker,
)
from app.db.session import Database
from factories import Tenant, make_tenant
from fakes import FakeIdentityProvider, FakeIssueTracker


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def database() -> Generator[Database, None, None]:
    """In-memory database with the schema created from metadata."""
    database = Database("sqlite+pysqlite:///:memory:")
    database.initialize()
    yield database
    database.dispose()


@pytest.fixture(scope="function")
def db(database: Database) -> Generator[Session, None, None]:
    session = database.session()
    yield session
    session.close()


# =============================================================================
# Tenants
# =============================================================================

@pytest.fixture(scope="function")
def tenant(db: Session) -> Tenant:
    return make_tenant(db, "Alpha")


@pytest.fixture(scope="function")
def other_tenant(db: Session) -> Tenant:
    return make_tenant(db, "Beta")


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture(scope="function")
def tracker() -> FakeIssueTracker:
    return FakeIssueTracker()


@pytest.fixture(scope="function")
async def client(
    database: Database,
    identity: FakeIdentityProvider,
    tracker: FakeIssueTracker,
) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient with CSRF header and faked external services.

    Authenticate a request with ``auth_headers``.
    """
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_issue_tracker] = lambda: tracker
    app.dependency_overrides[get_ai_provider] = lambda: None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()


