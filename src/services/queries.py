"""
Aggregation query engine.

Every read is a single SQL statement. Nested views (role -> permissions,
user -> roles -> permissions) come from one flat LEFT OUTER JOIN that is
folded into the tree in-process, so a role without permissions or a user
without roles still comes back with an empty list.

Usage:
    queries = AccessQueryEngine(db)
    roles = await queries.list_roles(RoleFilter(app_id="blog"))
    user = await queries.get_user("alice")
"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import Row, Select, and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import NotFoundError
from src.models.access import (
    ApplicationRecord,
    PermissionRecord,
    RoleRecord,
    UserRecord,
    role_permissions,
    user_roles,
)
from src.schemas.access import Application, Permission, Role, User

from .filters import RoleFilter


# ============================================================
# STATEMENT BUILDERS
# ============================================================

_ROLE_COLUMNS = (
    RoleRecord.id.label("role_id"),
    RoleRecord.app_id.label("role_app_id"),
    RoleRecord.name.label("role_name"),
    RoleRecord.description.label("role_description"),
    RoleRecord.created_at.label("role_created_at"),
)

_PERMISSION_COLUMNS = (
    PermissionRecord.id.label("perm_id"),
    PermissionRecord.app_id.label("perm_app_id"),
    PermissionRecord.name.label("perm_name"),
    PermissionRecord.description.label("perm_description"),
    PermissionRecord.created_at.label("perm_created_at"),
)


def _join_permissions(stmt: Select) -> Select:
    """LEFT JOIN a role's permissions onto a statement that already has roles."""
    return stmt.outerjoin(
        role_permissions,
        and_(
            role_permissions.c.role_id == RoleRecord.id,
            role_permissions.c.app_id == RoleRecord.app_id,
        ),
    ).outerjoin(
        PermissionRecord,
        and_(
            PermissionRecord.id == role_permissions.c.permission_id,
            PermissionRecord.app_id == role_permissions.c.app_id,
        ),
    )


def role_tree_statement() -> Select:
    """roles LEFT JOIN role_permissions LEFT JOIN permissions."""
    stmt = select(*_ROLE_COLUMNS, *_PERMISSION_COLUMNS).select_from(RoleRecord)
    return _join_permissions(stmt).order_by(
        RoleRecord.app_id,
        RoleRecord.id,
        PermissionRecord.id,
    )


def user_tree_statement() -> Select:
    """users LEFT JOIN user_roles LEFT JOIN roles LEFT JOIN ... permissions."""
    stmt = (
        select(
            UserRecord.username,
            UserRecord.created_at,
            UserRecord.updated_at,
            *_ROLE_COLUMNS,
            *_PERMISSION_COLUMNS,
        )
        .select_from(UserRecord)
        .outerjoin(user_roles, user_roles.c.username == UserRecord.username)
        .outerjoin(
            RoleRecord,
            and_(
                RoleRecord.id == user_roles.c.role_id,
                RoleRecord.app_id == user_roles.c.app_id,
            ),
        )
    )
    return _join_permissions(stmt).order_by(
        UserRecord.updated_at.desc(),
        UserRecord.username,
        RoleRecord.app_id,
        RoleRecord.id,
        PermissionRecord.id,
    )


# ============================================================
# ROW FOLDING
# ============================================================

def _permission_from_row(row: Row) -> dict[str, Any]:
    return {
        "id": row.perm_id,
        "app_id": row.perm_app_id,
        "name": row.perm_name,
        "description": row.perm_description,
        "created_at": row.perm_created_at,
    }


def _role_from_row(row: Row) -> dict[str, Any]:
    return {
        "id": row.role_id,
        "app_id": row.role_app_id,
        "name": row.role_name,
        "description": row.role_description,
        "created_at": row.role_created_at,
        "permissions": [],
    }


def _fold_role_row(roles: dict[tuple[str, str], dict[str, Any]], row: Row) -> None:
    if row.role_id is None:
        return
    key = (row.role_app_id, row.role_id)
    role = roles.get(key)
    if role is None:
        role = roles[key] = _role_from_row(row)
    if row.perm_id is not None:
        role["permissions"].append(_permission_from_row(row))


def fold_roles(rows: Iterable[Row]) -> list[Role]:
    """Group flat role/permission rows by role identity, keeping row order."""
    roles: dict[tuple[str, str], dict[str, Any]] = {}
    for row in rows:
        _fold_role_row(roles, row)
    return [Role.model_validate(r) for r in roles.values()]


def fold_users(rows: Iterable[Row]) -> list[User]:
    """Group flat user/role/permission rows into user trees, keeping row order."""
    users: dict[str, dict[str, Any]] = {}
    for row in rows:
        user = users.get(row.username)
        if user is None:
            user = users[row.username] = {
                "username": row.username,
                "created_at": row.created_at,
                "updated_at": row.updated_at,
                "roles": {},
            }
        _fold_role_row(user["roles"], row)

    return [
        User.model_validate({**u, "roles": list(u["roles"].values())})
        for u in users.values()
    ]


# ============================================================
# QUERY ENGINE
# ============================================================

class AccessQueryEngine:
    """Read side of the access service. One statement per call."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Applications

    async def list_applications(self) -> list[Application]:
        stmt = select(ApplicationRecord).order_by(ApplicationRecord.id)
        result = await self.db.execute(stmt)
        return [Application.model_validate(r) for r in result.scalars()]

    async def get_application(self, app_id: str) -> Application:
        stmt = select(ApplicationRecord).where(ApplicationRecord.id == app_id)
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise NotFoundError("application", id=app_id)
        return Application.model_validate(record)

    # Permissions

    async def list_permissions(self) -> list[Permission]:
        stmt = select(PermissionRecord).order_by(
            PermissionRecord.app_id,
            PermissionRecord.id,
        )
        result = await self.db.execute(stmt)
        return [Permission.model_validate(r) for r in result.scalars()]

    async def get_permission(self, perm_id: str, app_id: str) -> Permission:
        stmt = select(PermissionRecord).where(
            PermissionRecord.id == perm_id,
            PermissionRecord.app_id == app_id,
        )
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise NotFoundError("permission", id=perm_id, app_id=app_id)
        return Permission.model_validate(record)

    # Roles

    async def list_roles(self, filters: RoleFilter | None = None) -> list[Role]:
        """All roles with their permissions, optionally scoped to one app."""
        stmt = role_tree_statement()
        predicates = list((filters or RoleFilter()).predicates())
        if predicates:
            stmt = stmt.where(and_(*predicates))
        result = await self.db.execute(stmt)
        return fold_roles(result.all())

    async def get_role(self, role_id: str, app_id: str) -> Role:
        stmt = role_tree_statement().where(
            RoleRecord.id == role_id,
            RoleRecord.app_id == app_id,
        )
        result = await self.db.execute(stmt)
        roles = fold_roles(result.all())
        if not roles:
            raise NotFoundError("role", id=role_id, app_id=app_id)
        return roles[0]

    # Users

    async def list_users(self) -> list[User]:
        """All users, most recently updated first, ties by username."""
        result = await self.db.execute(user_tree_statement())
        return fold_users(result.all())

    async def get_user(self, username: str) -> User:
        stmt = user_tree_statement().where(UserRecord.username == username)
        result = await self.db.execute(stmt)
        users = fold_users(result.all())
        if not users:
            raise NotFoundError("user", username=username)
        return users[0]
