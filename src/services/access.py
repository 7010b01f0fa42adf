"""
Access service facade.

The only entry point the HTTP layer calls. It owns the engine and its
connection pool, opens one session per operation, bounds every operation by
a timeout and translates storage failures into ``src.core.errors``.

Usage:
    service = AccessService.from_settings(settings.database)

    await service.upsert_role(Role(id="editor", app_id="blog", permissions=[...]))
    role = await service.get_role("editor", "blog")
    roles = await service.get_roles({"app_id": "blog"}, timeout=2.0)

    await service.close()

Cancelling the calling task aborts the in-flight statement, rolls back and
returns the connection to the pool.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.core.config import DatabaseSettings
from src.core.errors import AccessError, TransientError, classify_error
from src.models.database import create_engine, create_session_factory
from src.schemas.access import Application, Permission, Role, User
from src.utils.health import HEALTH_CHECK_TIMEOUT, check_database

from .filters import RoleFilter
from .queries import AccessQueryEngine
from .writes import AccessWriteEngine

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_OPERATION_TIMEOUT = 15.0


class AccessService:
    """
    Read and write operations over applications, permissions, roles and users.

    Every method accepts an optional ``timeout`` (seconds) overriding the
    service-wide ``operation_timeout``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        operation_timeout: float = DEFAULT_OPERATION_TIMEOUT,
        engine: AsyncEngine | None = None,
    ):
        self.session_factory = session_factory
        self.operation_timeout = operation_timeout
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "AccessService":
        """Build the engine, pool and session factory from settings."""
        engine = create_engine(settings)
        return cls(
            create_session_factory(engine),
            operation_timeout=settings.operation_timeout,
            engine=engine,
        )

    async def close(self) -> None:
        """Dispose the connection pool if this service created it."""
        if self._engine is not None:
            await self._engine.dispose()

    async def _run(
        self,
        operation: str,
        call: Callable[[AsyncSession], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        limit = self.operation_timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(limit):
                async with self.session_factory() as db:
                    return await call(db)
        except AccessError as e:
            logger.debug("operation_rejected", operation=operation, error=e.code)
            raise
        except (SQLAlchemyError, OSError) as exc:
            error = classify_error(exc)
            logger.warning(
                "operation_failed",
                operation=operation,
                error=error.code,
                detail=error.message,
            )
            raise error from exc

    # ============================================================
    # HEALTH
    # ============================================================

    async def health(self) -> dict[str, str]:
        """Storage liveness probe with a fixed one second timeout."""
        component = await check_database(self.session_factory, HEALTH_CHECK_TIMEOUT)
        if not component.healthy:
            raise TransientError(f"db down: {component.message}")
        return {"message": "It's healthy"}

    # ============================================================
    # READS
    # ============================================================

    async def get_apps(self, *, timeout: float | None = None) -> list[Application]:
        return await self._run(
            "get_apps",
            lambda db: AccessQueryEngine(db).list_applications(),
            timeout,
        )

    async def get_app(self, app_id: str, *, timeout: float | None = None) -> Application:
        return await self._run(
            "get_app",
            lambda db: AccessQueryEngine(db).get_application(app_id),
            timeout,
        )

    async def get_perms(self, *, timeout: float | None = None) -> list[Permission]:
        return await self._run(
            "get_perms",
            lambda db: AccessQueryEngine(db).list_permissions(),
            timeout,
        )

    async def get_perm(
        self,
        perm_id: str,
        app_id: str,
        *,
        timeout: float | None = None,
    ) -> Permission:
        return await self._run(
            "get_perm",
            lambda db: AccessQueryEngine(db).get_permission(perm_id, app_id),
            timeout,
        )

    async def get_roles(
        self,
        filters: RoleFilter | Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> list[Role]:
        """
        List roles with their permissions.

        ``filters`` is a ``RoleFilter`` or a mapping of filter name to value;
        unsupported names raise ``MalformedInputError``.
        """
        if not isinstance(filters, RoleFilter):
            filters = RoleFilter.from_mapping(filters)
        return await self._run(
            "get_roles",
            lambda db: AccessQueryEngine(db).list_roles(filters),
            timeout,
        )

    async def get_role(self, role_id: str, app_id: str, *, timeout: float | None = None) -> Role:
        return await self._run(
            "get_role",
            lambda db: AccessQueryEngine(db).get_role(role_id, app_id),
            timeout,
        )

    async def get_users(self, *, timeout: float | None = None) -> list[User]:
        return await self._run(
            "get_users",
            lambda db: AccessQueryEngine(db).list_users(),
            timeout,
        )

    async def get_user(self, username: str, *, timeout: float | None = None) -> User:
        return await self._run(
            "get_user",
            lambda db: AccessQueryEngine(db).get_user(username),
            timeout,
        )

    # ============================================================
    # WRITES
    # ============================================================

    async def upsert_app(self, app: Application, *, timeout: float | None = None) -> None:
        await self._run(
            "upsert_app",
            lambda db: AccessWriteEngine(db).upsert_application(app),
            timeout,
        )

    async def upsert_perm(self, perm: Permission, *, timeout: float | None = None) -> None:
        await self._run(
            "upsert_perm",
            lambda db: AccessWriteEngine(db).upsert_permission(perm),
            timeout,
        )

    async def upsert_role(self, role: Role, *, timeout: float | None = None) -> None:
        await self._run(
            "upsert_role",
            lambda db: AccessWriteEngine(db).upsert_role(role),
            timeout,
        )

    async def upsert_user(self, user: User, *, timeout: float | None = None) -> None:
        await self._run(
            "upsert_user",
            lambda db: AccessWriteEngine(db).upsert_user(user),
            timeout,
        )

    async def delete_app(self, app_id: str, *, timeout: float | None = None) -> None:
        await self._run(
            "delete_app",
            lambda db: AccessWriteEngine(db).delete_application(app_id),
            timeout,
        )

    async def delete_perm(self, perm_id: str, app_id: str, *, timeout: float | None = None) -> None:
        await self._run(
            "delete_perm",
            lambda db: AccessWriteEngine(db).delete_permission(perm_id, app_id),
            timeout,
        )

    async def delete_role(self, role_id: str, app_id: str, *, timeout: float | None = None) -> None:
        await self._run(
            "delete_role",
            lambda db: AccessWriteEngine(db).delete_role(role_id, app_id),
            timeout,
        )

    async def delete_user(self, username: str, *, timeout: float | None = None) -> None:
        await self._run(
            "delete_user",
            lambda db: AccessWriteEngine(db).delete_user(username),
            timeout,
        )
