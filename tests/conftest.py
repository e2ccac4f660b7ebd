"""
Pytest configuration and fixtures for iTasks API tests
"""
import os
import tempfile

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-itasks"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RECURRING_SCHEDULER_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "testing"
os.environ["ATTACHMENT_DIR"] = tempfile.mkdtemp(prefix="itasks-attachments-")

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.main import app
from itasks.db.database import get_db, Base, engine, AsyncSessionLocal
from itasks.db import crud
from itasks.db.models import User, UserRole
from itasks.auth.security import Hasher, create_access_token
from itasks.core.events import EventBus
from itasks.core.lifecycle import TaskLifecycleManager
from itasks.core.sla import SlaPolicy

PASSWORD = "Helpdesk123"
# Hash once; bcrypt is deliberately slow
PASSWORD_HASH = Hasher.get_password_hash(PASSWORD)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema and session for each test"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session with the app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, email: str, name: str, role: UserRole, is_active: bool = True) -> User:
    return await crud.create_user_db(db, {
        "email": email,
        "name": name,
        "hashed_password": PASSWORD_HASH,
        "role": role,
        "is_active": is_active,
    })


@pytest.fixture
async def admin(db_session):
    return await make_user(db_session, "admin@helpdesk.io", "Ada Admin", UserRole.ADMIN)


@pytest.fixture
async def lead(db_session):
    return await make_user(db_session, "lead@helpdesk.io", "Lee Lead", UserRole.TEAM_LEAD)


@pytest.fixture
async def tech(db_session):
    return await make_user(db_session, "tech@helpdesk.io", "Tess Tech", UserRole.TECHNICIAN)


@pytest.fixture
async def other_tech(db_session):
    return await make_user(db_session, "other@helpdesk.io", "Otto Other", UserRole.TECHNICIAN)


@pytest.fixture
async def viewer(db_session):
    return await make_user(db_session, "viewer@helpdesk.io", "Vic Viewer", UserRole.VIEWER)


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def events() -> EventBus:
    """Private event bus so tests can observe what a mutation published"""
    return EventBus()


@pytest.fixture
def published(events):
    received = []
    events.subscribe(received.append)
    return received


@pytest.fixture
def sla_policy() -> SlaPolicy:
    return SlaPolicy.from_settings()


@pytest.fixture
def lifecycle(db_session, sla_policy, events) -> TaskLifecycleManager:
    return TaskLifecycleManager(db_session, sla_policy, events)
