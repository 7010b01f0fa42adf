"""
Database models.
"""

from .base import Base, CreatedAtMixin, TimestampMixin
from .access import (
    ApplicationRecord,
    PermissionRecord,
    RoleRecord,
    UserRecord,
    role_permissions,
    user_roles,
)

__all__ = [
    # Base
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    # Models
    "ApplicationRecord",
    "PermissionRecord",
    "RoleRecord",
    "UserRecord",
    # Link tables
    "role_permissions",
    "user_roles",
]
