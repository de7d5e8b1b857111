"""Pytest configuration and fixtures.

Database tests run against an in-memory SQLite database (aiosqlite). A
StaticPool keeps every session in a test on the same connection, so the
schema created by ``db_engine`` is visible to the app under test.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET_KEY"] = "test-signing-secret-" + "0123456789abcdef" * 4
os.environ["LOG_LEVEL"] = "INFO"

# Test user credentials
TEST_USER_EMAIL = "alice@example.com"
TEST_USER_PASSWORD = "correct horse battery staple"


def _reset_login_rate_limiter_state():
    """Clear failed-login bookkeeping kept at module level by the auth router."""
    from splitauth.api.auth import _login_attempts

    _login_attempts.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter(request):
    """Reset the login throttle before and after each test.

    Tests marked with pytest.mark.skip_rate_limiter_reset skip this fixture.
    """
    if request.node.get_closest_marker("skip_rate_limiter_reset"):
        yield
        return

    _reset_login_rate_limiter_state()
    yield
    _reset_login_rate_limiter_state()


# --- Configuration ---


@pytest.fixture
def test_settings():
    """Settings read from the test environment above."""
    from splitauth.core.config import Settings

    return Settings()


@pytest.fixture
def token_codec(test_settings):
    from splitauth.services.token_codec import TokenCodec

    return TokenCodec.from_settings(test_settings)


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a fresh in-memory database with all tables."""
    import splitauth.models  # noqa: F401
    from splitauth.core.database import Base

    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_store(db_session):
    from splitauth.services.session_store import SessionStore

    return SessionStore(db_session)


@pytest.fixture
def user_authenticator(db_session):
    from splitauth.services.users import DatabaseUserAuthenticator

    return DatabaseUserAuthenticator(db_session)


@pytest.fixture
def auth_service(session_store, token_codec, user_authenticator, test_settings):
    from splitauth.services.auth import AuthService

    return AuthService.from_settings(
        store=session_store,
        codec=token_codec,
        users=user_authenticator,
        config=test_settings,
    )


# --- Application Fixtures ---


@pytest.fixture
def app(test_settings, db_session):
    """Application instance bound to the test database session."""
    from splitauth.core.database import get_db
    from splitauth.main import create_app

    application = create_app(test_settings)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# --- Test Factories ---


@pytest.fixture
def user_factory(user_authenticator):
    """Factory for creating test users."""

    async def _create_user(
        email: str = TEST_USER_EMAIL,
        password: str = TEST_USER_PASSWORD,
        is_active: bool = True,
    ):
        user = await user_authenticator.create_user(email, password)
        if not is_active:
            user.is_active = False
            await user_authenticator.session.commit()
        return user

    return _create_user


@pytest_asyncio.fixture
async def test_user(user_factory):
    """Create the default test user."""
    return await user_factory()


@pytest_asyncio.fixture
async def login_tokens(async_client, test_user) -> dict:
    """Log the test user in through the API and return the token response."""
    response = await async_client.post(
        "/auth/login",
        json={"email": TEST_USER_EMAIL, "password": TEST_USER_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def auth_headers(login_tokens) -> dict[str, str]:
    """Headers with the access token for authenticated requests."""
    return {"Authorization": f"Bearer {login_tokens['access_token']}"}
