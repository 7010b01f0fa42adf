"""
Pytest fixtures for testing.

Provides:
- In-memory SQLite engine with foreign keys enforced
- Access service bound to that engine
- Test client over the ASGI app
- Factory fixture for seeding applications, permissions, roles and users
"""

from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.config import Settings
from src.main import create_app
from src.models.base import Base
from src.models.database import create_session_factory, enable_sqlite_foreign_keys
from src.schemas.access import Application, Permission, Role, User
from src.services.access import AccessService


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def service(session_factory) -> AccessService:
    """Access service bound to the test database."""
    return AccessService(session_factory, operation_timeout=5.0)


@pytest_asyncio.fixture(scope="function")
async def client(service: AccessService) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the access service injected."""
    app = create_app(
        settings=Settings(environment="testing", log_format="text"),
        service=service,
    )

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


# ============ Factory Fixtures ============


class AccessFactory:
    """Seeds access data through the service."""

    def __init__(self, service: AccessService):
        self.service = service

    async def app(self, app_id: str = "blog", name: str | None = None) -> Application:
        app = Application(id=app_id, name=name or app_id.title(), description=f"{app_id} app")
        await self.service.upsert_app(app)
        return app

    async def perm(self, perm_id: str, app_id: str = "blog") -> Permission:
        perm = Permission(
            id=perm_id,
            app_id=app_id,
            name=perm_id.replace(":", " "),
            description=f"Allows {perm_id}",
        )
        await self.service.upsert_perm(perm)
        return perm

    async def role(
        self,
        role_id: str,
        app_id: str = "blog",
        permissions: list[str] | None = None,
    ) -> Role:
        role = Role(
            id=role_id,
            app_id=app_id,
            name=role_id.title(),
            description=f"{role_id} role",
            permissions=[Permission(id=p, app_id=app_id) for p in permissions or []],
        )
        await self.service.upsert_role(role)
        return role

    async def user(
        self,
        username: str,
        roles: list[tuple[str, str]] | None = None,
    ) -> User:
        user = User(
            username=username,
            roles=[Role(id=role_id, app_id=app_id) for role_id, app_id in roles or []],
        )
        await self.service.upsert_user(user)
        return user


@pytest_asyncio.fixture
async def factory(service: AccessService) -> AccessFactory:
    """Fixture that provides AccessFactory."""
    return AccessFactory(service)


@pytest_asyncio.fixture
async def blog(factory: AccessFactory) -> Application:
    """Application "blog" with three permissions and an "editor" role."""
    app = await factory.app("blog")
    for perm_id in ("posts:create", "posts:delete", "posts:update"):
        await factory.perm(perm_id, "blog")
    await factory.role("editor", "blog", ["posts:create", "posts:update"])
    return app
