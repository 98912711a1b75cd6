"""
Shared fixtures.

Each test gets its own SQLite database file (aiosqlite) built from the ORM
metadata, so tests that need two independent sessions can have them.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.auth import ROLE_SUPER_ADMIN
from app.core.database import Base, get_db
from app.core.rate_limit import reset_memory_store
from app.core.security import create_access_token, hash_password
from app.main import app
from app.modules.admins import state_machine
from app.modules.admins.models import MosqueAdmin
from app.modules.audit.models import AuditEntry  # noqa: F401 - registers the table
from app.modules.audit.trail import Actor
from app.modules.mosques.codes import generate_code
from app.modules.mosques.models import Mosque
from app.modules.shared import utcnow
from app.modules.super_admins.models import SuperAdmin  # noqa: F401 - registers the table

ADMIN_PASSWORD = "Str0ng!Pass"
ADMIN_PASSWORD_HASH = hash_password(ADMIN_PASSWORD)


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def super_admin_actor():
    return Actor.super_admin(uuid4(), email="root@example.com", name="Root Admin")


@pytest.fixture
def make_mosque(db):
    """Create a mosque with a fresh code. ``expires_in`` may be negative."""
    counter = {"n": 0}

    async def _make(
        name: str | None = None,
        location: str = "Lahore",
        expires_in: timedelta = timedelta(days=30),
    ) -> Mosque:
        counter["n"] += 1
        mosque = Mosque(
            name=name or f"Masjid {counter['n']}",
            location=location,
            verification_code=generate_code(),
            verification_code_expires_at=utcnow() + expires_in,
        )
        db.add(mosque)
        await db.commit()
        return mosque

    return _make


@pytest.fixture
def make_admin(db):
    """Create a pending admin bound to ``mosque`` under its current code."""
    counter = {"n": 0}

    async def _make(mosque: Mosque, name: str = "Ahmed Khan") -> MosqueAdmin:
        counter["n"] += 1
        n = counter["n"]
        admin = MosqueAdmin(
            name=name,
            email=f"admin{n}@example.com",
            phone=f"+92300{n:07d}",
            password_hash=ADMIN_PASSWORD_HASH,
        )
        state_machine.start_registration(
            admin,
            mosque_id=mosque.id,
            verification_code=mosque.verification_code,
            application_notes=None,
            now=utcnow(),
        )
        db.add(admin)
        await db.commit()
        return admin

    return _make


@pytest.fixture
async def client(session_maker):
    """HTTP client for the app, wired to the per-test database."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def super_admin_headers(super_admin_actor):
    token = create_access_token(
        subject=str(super_admin_actor.id),
        additional_claims={
            "email": super_admin_actor.email,
            "role": ROLE_SUPER_ADMIN,
            "name": super_admin_actor.name,
        },
    )
    return {"Authorization": f"Bearer {token}"}
