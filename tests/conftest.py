"""Pytest configuration and fixtures.

Database handling:
- Uses TEST_DATABASE_URL when set (e.g. a PostgreSQL database with asyncpg)
- Otherwise each test gets a fresh SQLite file through aiosqlite
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from argon2 import PasswordHasher
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-signing-key-" + "x" * 40
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"

from blogplatform.core.config import JwtSettings  # noqa: E402
from blogplatform.core.database import Base, get_db  # noqa: E402
from blogplatform.services.auth import AuthService  # noqa: E402
from blogplatform.services.compromised_token_store import (  # noqa: E402
    SqlAlchemyCompromisedTokenStore,
)
from blogplatform.services.token import TokenService  # noqa: E402
from blogplatform.services.user_store import SqlAlchemyUserStore  # noqa: E402

TEST_SECRET_KEY = os.environ["JWT_SECRET_KEY"]
TEST_PASSWORD = "Str0ng!Passw0rd"


@pytest.fixture
def database_url(tmp_path) -> str:
    explicit_url = os.environ.get("TEST_DATABASE_URL")
    if explicit_url:
        return explicit_url
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture(scope="function")
async def db_engine(database_url):
    """Create a database engine with all tables for one test."""
    import blogplatform.models  # noqa: F401

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def password_hasher() -> PasswordHasher:
    """Argon2 hasher with minimal cost so tests stay fast."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1, hash_len=16, salt_len=16)


@pytest.fixture
def jwt_settings() -> JwtSettings:
    return JwtSettings(
        secret_key=TEST_SECRET_KEY,
        issuer="BlogPlatform",
        audience="BlogPlatformClients",
        access_token_expire_minutes=15,
        refresh_token_expire_days=7,
    )


@pytest.fixture
def token_store(db_session) -> SqlAlchemyCompromisedTokenStore:
    return SqlAlchemyCompromisedTokenStore(db_session)


@pytest.fixture
def token_service(jwt_settings, token_store) -> TokenService:
    return TokenService(jwt_settings, token_store)


@pytest.fixture
def user_store(db_session, password_hasher) -> SqlAlchemyUserStore:
    return SqlAlchemyUserStore(db_session, hasher=password_hasher)


@pytest.fixture
def auth_service(user_store, token_service) -> AuthService:
    return AuthService(user_store, token_service)


@pytest.fixture
def user_factory(auth_service):
    """Factory that registers users through the auth service."""

    async def _create_user(
        email: str = "alice@example.com",
        password: str = TEST_PASSWORD,
        full_name: str = "Alice Example",
    ):
        result = await auth_service.register(email, password, password, full_name)
        assert result.success, result.errors
        return result

    return _create_user


@pytest_asyncio.fixture(scope="function")
async def async_client(
    session_factory, password_hasher, jwt_settings
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from blogplatform.api.auth import get_jwt_settings, get_password_hasher
    from blogplatform.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_password_hasher] = lambda: password_hasher
    app.dependency_overrides[get_jwt_settings] = lambda: jwt_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()
