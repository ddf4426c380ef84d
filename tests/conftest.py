import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from typing import AsyncGenerator, Awaitable, Callable, Dict
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic_admin.main import app
from clinic_admin.core.permissions import Principal, RoleName
from clinic_admin.core.security import create_access_token
from clinic_admin.domain.users.models import User
from clinic_admin.domain.users.repository import RoleRepository, UserRepository
from clinic_admin.infrastructure.database import get_db, Base


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite://"

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(scope="function")
async def test_engine():
    """A fresh in-memory database with all tables for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session on the seeded test database."""
    async with session_factory() as session:
        await RoleRepository(session).seed_defaults()
        yield session


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database dependency override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory inserting a user with the given role name."""

    async def _make_user(
        name: str,
        email: str,
        role: RoleName = RoleName.CLIENT,
        password: str = DEFAULT_PASSWORD
    ) -> User:
        role_row = await RoleRepository(db_session).get_by_name(role.value)
        return await UserRepository(db_session).create({
            "name": name,
            "email": email,
            "password": password,
            "role_id": role_row.id
        })

    return _make_user


@pytest.fixture(scope="function")
async def admin_user(make_user) -> User:
    return await make_user("Root Admin", "root@clinic.org", RoleName.ADMIN)


@pytest.fixture(scope="function")
async def manager_user(make_user) -> User:
    return await make_user("Marta Manager", "marta@clinic.org", RoleName.MANAGER)


@pytest.fixture(scope="function")
async def client_user(make_user) -> User:
    return await make_user("Carlos Client", "carlos@clinic.org", RoleName.CLIENT)


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, email=user.email, role=user.role.name)


@pytest.fixture(scope="function")
def admin_principal(admin_user: User) -> Principal:
    return principal_for(admin_user)


@pytest.fixture(scope="function")
def manager_principal(manager_user: User) -> Principal:
    return principal_for(manager_user)


@pytest.fixture(scope="function")
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """Bearer header for a given user."""

    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _auth_headers


@pytest.fixture(scope="function")
async def admin_client(client: AsyncClient, admin_user: User, auth_headers) -> AsyncClient:
    """Create an admin authenticated test client."""
    client.headers.update(auth_headers(admin_user))
    return client


@pytest.fixture(scope="function")
async def manager_client(client: AsyncClient, manager_user: User, auth_headers) -> AsyncClient:
    """Create a manager authenticated test client."""
    client.headers.update(auth_headers(manager_user))
    return client


@pytest.fixture(scope="function")
def sample_user_data() -> dict:
    """Sample create payload."""
    return {
        "name": "Ana",
        "email": "ana@x.com",
        "password": "secret1",
        "role_id": 6
    }


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "auth: mark test as authentication related"
    )
    config.addinivalue_line(
        "markers", "users: mark test as user management related"
    )
    config.addinivalue_line(
        "markers", "permissions: mark test as role gate related"
    )
