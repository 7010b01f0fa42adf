"""
Base model classes and mixins.

- CreatedAtMixin: created_at (permissions, roles)
- TimestampMixin: created_at, updated_at (users)
"""

from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    # Common type annotations - all datetimes are timezone-aware
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


# ============================================================
# TIMESTAMP MIXINS
# ============================================================

class CreatedAtMixin:
    """
    Mixin for a server-assigned creation timestamp.

    The value is set by the database on insert and never updated.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class TimestampMixin(CreatedAtMixin):
    """
    Mixin for created_at and updated_at timestamps.

    updated_at is refreshed explicitly by upserts (ON CONFLICT DO UPDATE
    bypasses ORM onupdate hooks).
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
