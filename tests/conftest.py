"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Iterable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrportal.database import Base, get_db
from hrportal.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrportal.auth.models  # noqa: F401
import hrportal.core_hr.models  # noqa: F401
import hrportal.holidays.models  # noqa: F401
import hrportal.attendance.models  # noqa: F401
import hrportal.leave.models  # noqa: F401
import hrportal.movement.models  # noqa: F401
import hrportal.transfer.models  # noqa: F401

from hrportal.auth.models import Role, User
from hrportal.auth.scope import Principal
from hrportal.auth.service import create_session, hash_password
from hrportal.core_hr.models import Branch, Department, Designation, Employee

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

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


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
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
    from hrportal.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
def app_factory():
    """Build apps (optionally with another permission catalog) on the test DB."""
    built = []

    def _build(*args, **kwargs):
        application = create_app(*args, **kwargs)
        application.dependency_overrides[get_db] = _override_get_db
        built.append(application)
        return application

    yield _build
    for application in built:
        application.dependency_overrides.clear()


@pytest.fixture
async def app(app_factory):
    """Create a fresh app instance with DB dependency overridden."""
    return app_factory()


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

def _code(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:6].upper()}"


def _make_branch(*, name: str = "Dhaka Head Office", **extra) -> dict:
    return dict(id=uuid.uuid4(), name=name, branch_code=_code("BR"), **extra)


def _make_department(*, branch_id: uuid.UUID, name: str = "Engineering", **extra) -> dict:
    return dict(id=uuid.uuid4(), name=name, branch_id=branch_id, **extra)


def _make_designation(
    *,
    department_id: uuid.UUID,
    name: str = "Software Engineer",
    rank: int = 3,
) -> dict:
    return dict(id=uuid.uuid4(), name=name, department_id=department_id, rank=rank)


def _make_employee(
    *,
    department_id: uuid.UUID,
    designation_id: uuid.UUID,
    branch_id: uuid.UUID,
    first_name: str = "Test",
    last_name: str = "User",
    email: Optional[str] = None,
    joining_date: date = date(2024, 1, 15),
    **extra,
) -> dict:
    code = _code("EMP")
    return dict(
        id=uuid.uuid4(),
        employee_code=code,
        first_name=first_name,
        last_name=last_name,
        email=email or f"{code.lower()}@example.com",
        joining_date=joining_date,
        department_id=department_id,
        designation_id=designation_id,
        current_branch_id=branch_id,
        **extra,
    )


@dataclass
class Org:
    """Two branches, each with one department and designation."""

    branch: Branch
    department: Department
    designation: Designation
    other_branch: Branch
    other_department: Department
    other_designation: Designation


async def seed_org(db: AsyncSession) -> Org:
    branch = Branch(**_make_branch(name="Dhaka"))
    other_branch = Branch(**_make_branch(name="Chittagong"))
    db.add_all([branch, other_branch])
    await db.flush()

    department = Department(**_make_department(branch_id=branch.id, name="Engineering"))
    other_department = Department(**_make_department(branch_id=other_branch.id, name="Sales"))
    db.add_all([department, other_department])
    await db.flush()

    designation = Designation(**_make_designation(department_id=department.id))
    other_designation = Designation(
        **_make_designation(department_id=other_department.id, name="Sales Officer"),
    )
    db.add_all([designation, other_designation])
    await db.commit()
    return Org(branch, department, designation, other_branch, other_department, other_designation)


async def seed_employee(
    db: AsyncSession,
    org: Org,
    *,
    other: bool = False,
    **kwargs,
) -> Employee:
    """Insert an employee in the first (or, with ``other=True``, second) branch."""
    if other:
        placement = dict(
            department_id=org.other_department.id,
            designation_id=org.other_designation.id,
            branch_id=org.other_branch.id,
        )
    else:
        placement = dict(
            department_id=org.department.id,
            designation_id=org.designation.id,
            branch_id=org.branch.id,
        )
    employee = Employee(**_make_employee(**placement, **kwargs))
    db.add(employee)
    await db.commit()
    return employee


# ── Auth helpers ────────────────────────────────────────────────────

TEST_PASSWORD = "correct-horse-battery"


async def seed_user(
    db: AsyncSession,
    permissions: Iterable[str] = (),
    *,
    email: Optional[str] = None,
    employee: Optional[Employee] = None,
    branch_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
) -> User:
    role = Role(name=_code("role"), permissions=sorted(set(permissions)))
    db.add(role)
    await db.flush()
    user = User(
        name="Test User",
        email=email or f"{_code('user').lower()}@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        role_id=role.id,
        employee_id=employee.id if employee else None,
        branch_id=branch_id,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


async def auth_headers_for(db: AsyncSession, user: User) -> dict[str, str]:
    """Issue a real session for *user* and return Bearer headers."""
    token, _ = await create_session(db, user, "127.0.0.1", "pytest")
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


async def login_as(
    db: AsyncSession,
    permissions: Iterable[str] = (),
    **kwargs,
) -> tuple[User, dict[str, str]]:
    user = await seed_user(db, permissions, **kwargs)
    return user, await auth_headers_for(db, user)


def make_principal(
    permissions: Iterable[str] = (),
    *,
    branch_id: Optional[uuid.UUID] = None,
    department_id: Optional[uuid.UUID] = None,
    employee_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
) -> Principal:
    return Principal(
        user_id=user_id or uuid.uuid4(),
        name="Test Principal",
        email="principal@example.com",
        role_name="Tester",
        permissions=frozenset(permissions),
        branch_id=branch_id,
        employee_id=employee_id,
        department_id=department_id,
    )


@pytest.fixture
async def org(db) -> Org:
    return await seed_org(db)


@pytest.fixture
async def employee(db, org) -> Employee:
    return await seed_employee(db, org, first_name="Rahim", last_name="Uddin")
