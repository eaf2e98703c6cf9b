"""
Pytest configuration and fixtures for the Event Certificate service tests.

This module provides shared fixtures for database, authentication, test client,
and common test data.
"""

import os
import sys
from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator
from pathlib import Path

# Settings are read at import time, so the test database must be set first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RUN_SCHEDULER_IN_WEB", "false")

import pytest
import pytest_asyncio
from fastapi import HTTPException
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.main import app
from app.database import Base, get_db
from app.models.user import User, UserRole
from app.models.event import Event
from app.models.attendance import Attendance, AttendanceStatus
from app.config import Settings
from app.utils.security import hash_password
from app.utils.certificate_templates import clear_template_cache


# ============================================================================
# Test Configuration
# ============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """
    Provide test-specific settings.

    Uses in-memory SQLite and writes generated PDFs under tmp_path.
    """
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SECRET_KEY="test-secret-key-for-testing-only",
        DEBUG=True,
        SENDGRID_API_KEY="SG.test-key",
        SENDGRID_FROM_EMAIL="certificates@example.com",
        SENDGRID_FROM_NAME="Test Council",
        SENDGRID_SANDBOX_MODE=True,
        CERTIFICATE_OUTPUT_DIR=str(tmp_path / "generated_certificates"),
        CERTIFICATE_MAX_RETRIES=3,
        RUN_SCHEDULER_IN_WEB=False,
    )


@pytest.fixture(autouse=True)
def _reset_template_cache():
    clear_template_cache()
    yield
    clear_template_cache()


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """
    Create async database engine for tests.

    Uses in-memory SQLite with StaticPool to ensure all connections
    share the same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine):
    """Session factory bound to the test engine (for jobs that open their own sessions)."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide database session for tests.

    Creates a new session for each test and rolls back after the test.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide HTTP test client.

    Overrides the database session dependency so that every request shares
    the test's db_session and sees the data the test created.
    """
    from app.api.routes import auth
    auth._login_rate_limit_cache.clear()

    async def override_get_db():
        try:
            yield db_session
        except HTTPException:
            # Handled error responses keep the test's loaded objects intact
            raise
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
    auth._login_rate_limit_cache.clear()


# ============================================================================
# User Fixtures
# ============================================================================

async def create_user(
    db_session: AsyncSession,
    email: str,
    first_name: str,
    last_name: str = "User",
    password: str = "password123",
    role: str = UserRole.USER.value,
    department: str = None,
) -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        department=department,
        role=role,
        is_active=True,
        password_hash=hash_password(password),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Platform admin."""
    return await create_user(db_session, "admin@test.com", "Admin", password="admin123",
                             role=UserRole.ADMIN.value)


@pytest_asyncio.fixture
async def organiser_user(db_session: AsyncSession) -> User:
    """Regular user who creates events."""
    return await create_user(db_session, "organiser@test.com", "Olivia", "Organiser",
                             password="organiser123", department="Computer Science")


@pytest_asyncio.fixture
async def participant_user(db_session: AsyncSession) -> User:
    """Regular user who attends events."""
    return await create_user(db_session, "participant@test.com", "Priya", "Sharma",
                             password="participant123", department="B.Tech CSE")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """User with no relation to the test event."""
    return await create_user(db_session, "other@test.com", "Oscar", "Outsider", password="other123")


# ============================================================================
# Authentication Fixtures
# ============================================================================

async def login(client: AsyncClient, email: str, password: str) -> dict:
    """Log in and return bearer auth headers."""
    response = await client.post(
        "/api/auth/login",
        json={"email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest_asyncio.fixture
async def organiser_headers(client: AsyncClient, organiser_user: User) -> dict:
    return await login(client, organiser_user.email, "organiser123")


@pytest_asyncio.fixture
async def participant_headers(client: AsyncClient, participant_user: User) -> dict:
    return await login(client, participant_user.email, "participant123")


@pytest_asyncio.fixture
async def other_headers(client: AsyncClient, other_user: User) -> dict:
    return await login(client, other_user.email, "other123")


# ============================================================================
# Event Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def active_event(db_session: AsyncSession, organiser_user: User, participant_user: User) -> Event:
    """
    An active public event created by organiser_user with participant_user
    joined. It took place yesterday and accepts attendance for another week.
    """
    now = datetime.now(timezone.utc)
    event = Event(
        title="AI Innovation Summit",
        venue="Main Auditorium",
        department="Computer Science",
        organiser_name="Tech Committee",
        chief_guest="Dr. Guest",
        event_date=now - timedelta(days=1),
        expiry_date=now + timedelta(days=7),
        is_active=True,
        created_by_id=organiser_user.id,
    )
    event.participants.append(participant_user)
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


async def mark_present(db_session: AsyncSession, event: Event, *users: User) -> None:
    """Insert present attendance rows directly."""
    for user in users:
        db_session.add(Attendance(
            event_id=event.id,
            user_id=user.id,
            status=AttendanceStatus.PRESENT.value,
        ))
    await db_session.commit()


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """
    Configure pytest markers.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
