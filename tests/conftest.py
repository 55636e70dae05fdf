"""Pytest configuration and fixtures for the permission service tests.

Provides an in-memory database, an HTTP client with overridden dependencies,
a seeded catalog and the same catalog as plain engine records.
"""

import os

# Configure before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SAVE_RATE_LIMIT"] = "1000/minute"
os.environ["PRUNE_REDUNDANT_OVERRIDES"] = "1"

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database.base import Base
from app.core.database.engine import enable_sqlite_foreign_keys, get_db
from app.features.permissions.dependencies import get_registry
from app.features.permissions.engine.nodes import NodeKind, NodeRecord
from app.features.permissions.engine.session import EditorRegistry
from app.features.permissions.engine.tree import TreeModel
from app.features.permissions.models import JobPermission, UserPermission
from app.features.services.models import Service, SubService, SubSubService
from app.features.users.models import Job, User


# ── Catalog ──────────────────────────────────────────────────────
#
# s:1 Facility
#   ss:1 Sites
#     sss:1 Add site
#     sss:2 Edit site
#   ss:2 Buildings
# s:2 Reports
#   ss:3 Monthly
#     sss:3 Export
# s:3 Tasks

SERVICES = [
    (1, "المرافق", "Facility"),
    (2, "التقارير", "Reports"),
    (3, "المهام", "Tasks"),
]
SUB_SERVICES = [
    (1, 1, "المواقع", "Sites"),
    (2, 1, "المباني", "Buildings"),
    (3, 2, "شهري", "Monthly"),
]
SUB_SUB_SERVICES = [
    (1, 1, "إضافة موقع", "Add site"),
    (2, 1, "تعديل موقع", "Edit site"),
    (3, 3, "تصدير", "Export"),
]


def catalog_records() -> list[NodeRecord]:
    records = [NodeRecord(NodeKind.SERVICE, i, None, ar, en) for i, ar, en in SERVICES]
    records += [NodeRecord(NodeKind.SUB_SERVICE, i, p, ar, en) for i, p, ar, en in SUB_SERVICES]
    records += [NodeRecord(NodeKind.SUB_SUB_SERVICE, i, p, ar, en) for i, p, ar, en in SUB_SUB_SERVICES]
    return records


@pytest.fixture
def records() -> list[NodeRecord]:
    """Catalog as flat engine records."""
    return catalog_records()


@pytest.fixture
def tree() -> TreeModel:
    """Catalog as a built tree."""
    built, warnings = TreeModel.build(catalog_records())
    assert warnings == []
    return built


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create in-memory test database engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def editors() -> EditorRegistry:
    """Fresh editor registry per test."""
    return EditorRegistry()


@pytest_asyncio.fixture
async def client(session_factory, editors) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database and registry dependencies."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: editors

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def seeded(session_factory) -> None:
    """
    Seed the catalog, two jobs and three users.

    Job 1 (Supervisor) grants s:1, ss:1 and sss:1; job 2 (Employee) grants
    nothing. u-1 holds job 1 with an extra grant of sss:2, u-2 holds job 2
    and u-admin is a super admin without a job.
    """
    async with session_factory() as session:
        session.add_all([Service(id=i, label_ar=ar, label_en=en) for i, ar, en in SERVICES])
        await session.flush()
        session.add_all([
            SubService(id=i, service_id=p, label_ar=ar, label_en=en) for i, p, ar, en in SUB_SERVICES
        ])
        await session.flush()
        session.add_all([
            SubSubService(id=i, sub_service_id=p, label_ar=ar, label_en=en) for i, p, ar, en in SUB_SUB_SERVICES
        ])
        session.add_all([
            Job(id=1, name_ar="مشرف", name_en="Supervisor"),
            Job(id=2, name_ar="موظف", name_en="Employee"),
        ])
        await session.flush()
        session.add_all([
            User(id="u-1", name_ar="سالم", name_en="Salem", email="salem@example.com", job_id=1),
            User(id="u-2", name_ar="نورة", name_en="Noura", email="noura@example.com", job_id=2),
            User(id="u-admin", name_ar="المدير", name_en="Admin", email="admin@example.com", is_super_admin=True),
        ])
        await session.flush()
        session.add_all([
            JobPermission(job_id=1, service_id=1),
            JobPermission(job_id=1, sub_service_id=1),
            JobPermission(job_id=1, sub_sub_service_id=1),
            UserPermission(user_id="u-1", sub_sub_service_id=2, is_allowed=True),
        ])
        await session.commit()
