"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (scheduling, time, approvals, dashboard, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, time, timedelta, timezone
from typing import AsyncGenerator, Iterable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rotaflow.auth.context import AccessContext
from rotaflow.common.constants import UserRole
from rotaflow.config import settings
from rotaflow.database import Base, get_db, get_session_factory, make_session_dependency
from rotaflow.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import rotaflow.approvals.models  # noqa: F401
import rotaflow.common.audit  # noqa: F401
import rotaflow.core_hr.models  # noqa: F401
import rotaflow.leave.models  # noqa: F401
import rotaflow.notifications.models  # noqa: F401
import rotaflow.scheduling.models  # noqa: F401
import rotaflow.swaps.models  # noqa: F401
import rotaflow.timekeeping.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from rotaflow.common.rate_limit import limiter

    limiter.reset()
    yield


# Same commit-then-dispatch behaviour as production, bound to the test engine
_override_get_db = make_session_dependency(TestSessionFactory)


def _override_session_factory() -> async_sessionmaker[AsyncSession]:
    return TestSessionFactory


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_session_factory] = _override_session_factory
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

TENANT_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
OTHER_TENANT_ID = uuid.UUID("00000000-0000-4000-8000-000000000002")


def _make_location(
    *,
    tenant_id: uuid.UUID = TENANT_ID,
    name: str = "Leeds Contact Centre",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        name=name,
        is_active=True,
    )


def _make_employee(
    *,
    tenant_id: uuid.UUID = TENANT_ID,
    role: UserRole = UserRole.employee,
    first_name: str = "Test",
    last_name: str = "User",
    email: Optional[str] = None,
    location_id: Optional[uuid.UUID] = None,
    hourly_rate: float = 12.5,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        employee_code=f"RF-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{code.lower()}@rotaflow.test",
        role=role,
        location_id=location_id,
        hourly_rate=hourly_rate,
        is_active=True,
        is_online=False,
    )


async def seed_location(db: AsyncSession, **kwargs):
    from rotaflow.core_hr.models import Location

    location = Location(**_make_location(**kwargs))
    db.add(location)
    await db.flush()
    return location


async def seed_employee(db: AsyncSession, **kwargs):
    from rotaflow.core_hr.models import Employee

    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.flush()
    return employee


async def seed_manager_scope(
    db: AsyncSession,
    manager_id: uuid.UUID,
    location_ids: Iterable[uuid.UUID],
    *,
    tenant_id: uuid.UUID = TENANT_ID,
) -> None:
    from rotaflow.core_hr.models import ManagerLocation

    for location_id in location_ids:
        db.add(ManagerLocation(tenant_id=tenant_id, manager_id=manager_id, location_id=location_id))
    await db.flush()


async def seed_template(
    db: AsyncSession,
    *,
    tenant_id: uuid.UUID = TENANT_ID,
    name: str = "Morning",
    start: time = time(9, 0),
    end: time = time(17, 0),
    color: str = "#10B981",
):
    from rotaflow.scheduling.models import ShiftTemplate

    template = ShiftTemplate(
        tenant_id=tenant_id,
        name=name,
        start_time=start,
        end_time=end,
        color=color,
        required_staff=1,
        is_active=True,
    )
    db.add(template)
    await db.flush()
    return template


async def allow_manager_approvals(db: AsyncSession, *, tenant_id: uuid.UUID = TENANT_ID) -> None:
    from rotaflow.core_hr.service import TenantSettingsService

    await TenantSettingsService.update(db, tenant_id, allow_manager_approvals=True)


def context_for(employee, location_ids: Iterable[uuid.UUID] = ()) -> AccessContext:
    """Build the access context the auth dependency would resolve for *employee*."""
    return AccessContext(
        user_id=employee.id,
        role=employee.role,
        tenant_id=employee.tenant_id,
        organization_id=employee.organization_id,
        location_ids=frozenset(location_ids),
    )


@pytest.fixture
async def location(db):
    return await seed_location(db)


@pytest.fixture
async def admin(db):
    return await seed_employee(db, role=UserRole.admin, first_name="Ada", last_name="Admin")


@pytest.fixture
async def manager(db, location):
    manager = await seed_employee(
        db, role=UserRole.manager, first_name="Mina", last_name="Manager",
        location_id=location.id,
    )
    await seed_manager_scope(db, manager.id, [location.id])
    return manager


@pytest.fixture
async def employee(db, location):
    return await seed_employee(db, first_name="Erin", last_name="Worker", location_id=location.id)


@pytest.fixture
def admin_ctx(admin) -> AccessContext:
    return context_for(admin)


@pytest.fixture
def manager_ctx(manager, location) -> AccessContext:
    return context_for(manager, [location.id])


@pytest.fixture
def employee_ctx(employee) -> AccessContext:
    return context_for(employee)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    tenant_id: uuid.UUID = TENANT_ID,
    *,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "tenant_id": str(tenant_id),
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.tenant_id)}"}
