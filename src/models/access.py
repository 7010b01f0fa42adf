"""
Access control storage models.

Tables:
- applications: root scoping unit
- permissions, roles: keyed by (id, app_id), owned by one application
- role_permissions: role -> permission links within one application
- users: keyed by username
- user_roles: user -> role links, across applications

Every link table shares the owning app_id column between both of its
foreign keys, so a role can only reference permissions of its own
application. Deletes cascade from applications down to link rows.
"""

from sqlalchemy import (
    Column,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, CreatedAtMixin, TimestampMixin


class ApplicationRecord(Base):
    """Application row."""

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")

    def __repr__(self) -> str:
        return f"<Application {self.id}>"


class PermissionRecord(Base, CreatedAtMixin):
    """Permission row, unique per application."""

    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    app_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("applications.id", ondelete="CASCADE"),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")

    def __repr__(self) -> str:
        return f"<Permission {self.app_id}:{self.id}>"


class RoleRecord(Base, CreatedAtMixin):
    """Role row, unique per application."""

    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    app_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("applications.id", ondelete="CASCADE"),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, server_default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")

    def __repr__(self) -> str:
        return f"<Role {self.app_id}:{self.id}>"


class UserRecord(Base, TimestampMixin):
    """User row."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_updated_at", "updated_at"),)

    username: Mapped[str] = mapped_column(String(255), primary_key=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"


# Many-to-many between roles and permissions of the same application
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(255), nullable=False),
    Column("app_id", String(255), nullable=False),
    Column("permission_id", String(255), nullable=False),
    PrimaryKeyConstraint("role_id", "app_id", "permission_id"),
    ForeignKeyConstraint(
        ["role_id", "app_id"],
        ["roles.id", "roles.app_id"],
        ondelete="CASCADE",
    ),
    ForeignKeyConstraint(
        ["permission_id", "app_id"],
        ["permissions.id", "permissions.app_id"],
        ondelete="CASCADE",
    ),
    Index("ix_role_permissions_permission", "permission_id", "app_id"),
)


# Many-to-many between users and roles of any application
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column(
        "username",
        String(255),
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("role_id", String(255), nullable=False),
    Column("app_id", String(255), nullable=False),
    PrimaryKeyConstraint("username", "role_id", "app_id"),
    ForeignKeyConstraint(
        ["role_id", "app_id"],
        ["roles.id", "roles.app_id"],
        ondelete="CASCADE",
    ),
    Index("ix_user_roles_role", "role_id", "app_id"),
)
