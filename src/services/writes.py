"""
Transactional write engine.

Upserts insert a row or update its mutable fields on natural-key conflict.
Role and user upserts also replace the entity's whole association set in the
same transaction: delete every existing link row, then insert the new set.
Any failing step rolls the transaction back, so readers never see a partial
association set.

Deletes are unconditional: a missing row affects zero rows and succeeds.
Dependent rows go with it through ON DELETE CASCADE.
"""

from typing import Any

import structlog
from sqlalchemy import Table, delete, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import AccessError, MalformedInputError
from src.models.access import (
    ApplicationRecord,
    PermissionRecord,
    RoleRecord,
    UserRecord,
    role_permissions,
    user_roles,
)
from src.schemas.access import Application, Permission, Role, User

logger = structlog.get_logger(__name__)

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# ============================================================
# INPUT VALIDATION
# ============================================================

def _require(entity: str, **fields: str | None) -> None:
    for name, value in fields.items():
        if value is None or not str(value).strip():
            raise MalformedInputError(f"{entity} is missing required field '{name}'")


def validate_application(app: Application) -> None:
    _require("application", id=app.id)


def validate_permission(perm: Permission) -> None:
    _require("permission", id=perm.id, app_id=perm.app_id)


def validate_role(role: Role) -> None:
    """Role keys, and every permission must belong to the role's app."""
    _require("role", id=role.id, app_id=role.app_id)
    for perm in role.permissions:
        _require("role permission", id=perm.id)
        if perm.app_id and perm.app_id != role.app_id:
            raise MalformedInputError(
                f"permission '{perm.id}' belongs to application '{perm.app_id}', "
                f"not to role application '{role.app_id}'"
            )


def validate_user(user: User) -> None:
    _require("user", username=user.username)
    for role in user.roles:
        _require("user role", id=role.id, app_id=role.app_id)


# ============================================================
# WRITE ENGINE
# ============================================================

class AccessWriteEngine:
    """
    Write side of the access service.

    Each public method runs in its own transaction on ``db``; the session
    must not already be inside one.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self, table: Any):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERTS[dialect](table)
        except KeyError:
            raise AccessError(f"upsert is not supported on dialect '{dialect}'") from None

    # Applications / permissions

    async def upsert_application(self, app: Application) -> None:
        validate_application(app)
        stmt = self._insert(ApplicationRecord).values(
            id=app.id,
            name=app.name,
            description=app.description,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={"name": stmt.excluded.name, "description": stmt.excluded.description},
        )
        async with self.db.begin():
            await self.db.execute(stmt)
        logger.info("application_upserted", app_id=app.id)

    async def upsert_permission(self, perm: Permission) -> None:
        validate_permission(perm)
        stmt = self._insert(PermissionRecord).values(
            id=perm.id,
            app_id=perm.app_id,
            name=perm.name,
            description=perm.description,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id", "app_id"],
            set_={"name": stmt.excluded.name, "description": stmt.excluded.description},
        )
        async with self.db.begin():
            await self.db.execute(stmt)
        logger.info("permission_upserted", perm_id=perm.id, app_id=perm.app_id)

    # Roles / users

    async def upsert_role(self, role: Role) -> None:
        """Upsert the role row and replace its permission set."""
        validate_role(role)
        permission_ids = list(dict.fromkeys(p.id for p in role.permissions))

        stmt = self._insert(RoleRecord).values(
            id=role.id,
            app_id=role.app_id,
            name=role.name,
            description=role.description,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id", "app_id"],
            set_={"name": stmt.excluded.name, "description": stmt.excluded.description},
        )

        async with self.db.begin():
            await self.db.execute(stmt)
            await self.db.execute(
                delete(role_permissions).where(
                    role_permissions.c.role_id == role.id,
                    role_permissions.c.app_id == role.app_id,
                )
            )
            await self._insert_links(
                role_permissions,
                [
                    {"role_id": role.id, "app_id": role.app_id, "permission_id": perm_id}
                    for perm_id in permission_ids
                ],
            )

        logger.info(
            "role_upserted",
            role_id=role.id,
            app_id=role.app_id,
            permissions=len(permission_ids),
        )

    async def upsert_user(self, user: User) -> None:
        """Upsert the user row (refreshing updated_at) and replace its role set."""
        validate_user(user)
        role_keys = list(dict.fromkeys((r.id, r.app_id) for r in user.roles))

        stmt = self._insert(UserRecord).values(username=user.username)
        stmt = stmt.on_conflict_do_update(
            index_elements=["username"],
            set_={"updated_at": func.now()},
        )

        async with self.db.begin():
            await self.db.execute(stmt)
            await self.db.execute(
                delete(user_roles).where(user_roles.c.username == user.username)
            )
            await self._insert_links(
                user_roles,
                [
                    {"username": user.username, "role_id": role_id, "app_id": app_id}
                    for role_id, app_id in role_keys
                ],
            )

        logger.info("user_upserted", username=user.username, roles=len(role_keys))

    async def _insert_links(self, table: Table, rows: list[dict[str, str]]) -> None:
        for row in rows:
            await self.db.execute(table.insert().values(**row))

    # Deletes

    async def delete_application(self, app_id: str) -> int:
        return await self._delete(
            "application_deleted",
            delete(ApplicationRecord).where(ApplicationRecord.id == app_id),
            app_id=app_id,
        )

    async def delete_permission(self, perm_id: str, app_id: str) -> int:
        return await self._delete(
            "permission_deleted",
            delete(PermissionRecord).where(
                PermissionRecord.id == perm_id,
                PermissionRecord.app_id == app_id,
            ),
            perm_id=perm_id,
            app_id=app_id,
        )

    async def delete_role(self, role_id: str, app_id: str) -> int:
        return await self._delete(
            "role_deleted",
            delete(RoleRecord).where(
                RoleRecord.id == role_id,
                RoleRecord.app_id == app_id,
            ),
            role_id=role_id,
            app_id=app_id,
        )

    async def delete_user(self, username: str) -> int:
        return await self._delete(
            "user_deleted",
            delete(UserRecord).where(UserRecord.username == username),
            username=username,
        )

    async def _delete(self, event: str, stmt: Any, **key: str) -> int:
        """Run a delete; returns the number of rows removed (0 is fine)."""
        async with self.db.begin():
            result = await self.db.execute(stmt)
        logger.info(event, rowcount=result.rowcount, **key)
        return result.rowcount
