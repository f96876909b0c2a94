"""Pytest configuration and fixtures for Kanvaro permission tests.

Tests run against an in-memory SQLite database (aiosqlite) with the real
models; Redis revocation checks are patched out so no server is needed.
"""

from dataclasses import dataclass
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (register tables on Base.metadata)
from app.auth.jwt import create_access_token
from app.auth.revocation import TokenRevocation
from app.database import Base, get_db
from app.main import app
from app.models.organization import Organization
from app.models.project import Project, ProjectMember
from app.models.user import User


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session with the app."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Redis ────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def no_revocations(monkeypatch):
    """Treat every token as live unless a test says otherwise."""

    async def _not_revoked(_value: str) -> bool:
        return False

    monkeypatch.setattr(TokenRevocation, "is_revoked", staticmethod(_not_revoked))
    monkeypatch.setattr(TokenRevocation, "is_user_revoked", staticmethod(_not_revoked))


# ── Test Data Fixtures ───────────────────────────────────────────

@dataclass
class Seed:
    org: Organization
    other_org: Organization
    super_admin: User
    admin: User
    manager: User        # global project_manager, no memberships
    member: User         # team_member; project_manager on p1
    viewer: User         # viewer; project_viewer on p2
    outsider: User       # admin of the other organization
    p1: Project
    p2: Project
    p3: Project          # nobody is a member
    foreign: Project     # belongs to the other organization


async def _user(db: AsyncSession, org: Organization, email: str, role: str) -> User:
    user = User(organization_id=org.id, email=email, full_name=email.split("@")[0], role=role)
    db.add(user)
    await db.flush()
    return user


async def _project(db: AsyncSession, org: Organization, name: str) -> Project:
    project = Project(organization_id=org.id, name=name)
    db.add(project)
    await db.flush()
    return project


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> Seed:
    org = Organization(name="Acme")
    other_org = Organization(name="Globex")
    db_session.add_all([org, other_org])
    await db_session.flush()

    users = {
        "super_admin": await _user(db_session, org, "root@acme.test", "super_admin"),
        "admin": await _user(db_session, org, "admin@acme.test", "admin"),
        "manager": await _user(db_session, org, "pm@acme.test", "project_manager"),
        "member": await _user(db_session, org, "dev@acme.test", "team_member"),
        "viewer": await _user(db_session, org, "view@acme.test", "viewer"),
        "outsider": await _user(db_session, other_org, "admin@globex.test", "admin"),
    }
    p1 = await _project(db_session, org, "Apollo")
    p2 = await _project(db_session, org, "Borealis")
    p3 = await _project(db_session, org, "Cascade")
    foreign = await _project(db_session, other_org, "Zenith")

    db_session.add_all([
        ProjectMember(user_id=users["member"].id, project_id=p1.id, project_role="project_manager"),
        ProjectMember(user_id=users["viewer"].id, project_id=p2.id, project_role="project_viewer"),
    ])
    await db_session.flush()

    return Seed(org=org, other_org=other_org, p1=p1, p2=p2, p3=p3, foreign=foreign, **users)


def auth_headers(user: User) -> dict:
    """Authorization header with a fresh access token for `user`."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "client: Client permission cache tests")


@pytest.fixture
def headers_for():
    return auth_headers
