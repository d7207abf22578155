"""Pytest configuration and fixtures.

The API tests run without PostgreSQL or Redis: database sessions, the
principal cache and the workflow services are replaced through
``app.dependency_overrides``.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from secureplace.api.app import create_application
from secureplace.api.dependencies import (
    get_current_principal,
    get_principal_cache,
    get_provisioning_service,
)
from secureplace.auth.roles import Principal, Role
from secureplace.db.session import get_db, get_db_read

FIRM_A = "0190a1b2-0000-7000-8000-00000000000a"
FIRM_B = "0190a1b2-0000-7000-8000-00000000000b"


@pytest.fixture
def super_admin() -> Principal:
    return Principal(
        user_id="11111111-1111-1111-1111-111111111111",
        email="root@example.com",
        role=Role.SUPER_ADMIN,
        full_name="Root Admin",
    )


@pytest.fixture
def firm_admin() -> Principal:
    return Principal(
        user_id="22222222-2222-2222-2222-222222222222",
        email="admin@firm-a.example.com",
        role=Role.FIRM_ADMIN,
        firm_id=FIRM_A,
        full_name="Firm Admin",
    )


@pytest.fixture
def employee_principal() -> Principal:
    return Principal(
        user_id="33333333-3333-3333-3333-333333333333",
        email="staff@firm-a.example.com",
        role=Role.EMPLOYEE,
        firm_id=FIRM_A,
        full_name="Staff Member",
    )


@pytest.fixture
def db_session() -> AsyncMock:
    """Mock AsyncSession. ``add`` and ``delete`` behave like the real API shape."""
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def principal_cache() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def provisioning_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def app(db_session: AsyncMock, principal_cache: AsyncMock, provisioning_service: AsyncMock) -> FastAPI:
    """Create FastAPI application for testing."""
    application = create_application()

    async def override_get_db() -> AsyncGenerator[AsyncMock]:
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_db_read] = override_get_db
    application.dependency_overrides[get_principal_cache] = lambda: principal_cache
    application.dependency_overrides[get_provisioning_service] = lambda: provisioning_service

    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create sync test client."""
    return TestClient(app)


@pytest.fixture
def login_as(app: FastAPI):
    """Authenticate subsequent requests as the given principal."""

    def _login(principal: Principal) -> None:
        app.dependency_overrides[get_current_principal] = lambda: principal

    return _login


def make_profile(**overrides: Any) -> SimpleNamespace:
    """A stand-in for a UserProfile row."""
    now = datetime(2026, 1, 1, tzinfo=UTC)
    values: dict[str, Any] = {
        "id": "44444444-4444-4444-4444-444444444444",
        "email": "jane@firm-a.example.com",
        "first_name": "Jane",
        "last_name": "van Doe",
        "full_name": "Jane van Doe",
        "role": Role.EMPLOYEE.value,
        "employee_code": "E-100",
        "phone": "+44 20 7946 0000",
        "is_volunteer": False,
        "firm_id": FIRM_A,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def make_firm(**overrides: Any) -> SimpleNamespace:
    """A stand-in for a Firm row."""
    now = datetime(2026, 1, 1, tzinfo=UTC)
    values: dict[str, Any] = {
        "id": FIRM_A,
        "name": "Acme Safety",
        "industry": "Construction",
        "contact_email": "office@acme.example.com",
        "phone_number": None,
        "address": None,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return SimpleNamespace(**values)
