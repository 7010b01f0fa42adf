"""
Access control entity schemas.

These are the values the access service accepts and returns. Each one
round-trips to a JSON object with snake_case keys; timestamps serialize as
``YYYY-MM-DDTHH:MM:SS.ffffffZ`` in UTC.
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive values; storage always writes UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return _as_utc(value).strftime(TIMESTAMP_FORMAT)


Timestamp = Annotated[
    datetime,
    AfterValidator(_as_utc),
    PlainSerializer(format_timestamp, return_type=str),
]


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


class EntitySchema(BaseModel):
    """Common config for entity schemas."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class Application(EntitySchema):
    """Top-level scoping unit that owns permissions and roles."""

    id: str
    name: str = ""
    description: str = ""


class Permission(EntitySchema):
    """
    A grantable capability scoped to one application.

    When listed inside a role on write, ``app_id`` may be left empty and
    defaults to the role's application.
    """

    id: str
    app_id: str = ""
    name: str = ""
    description: str = ""
    created_at: Timestamp | None = None


class Role(EntitySchema):
    """A named set of permissions scoped to one application."""

    id: str
    app_id: str
    name: str = ""
    description: str = ""
    permissions: list[Permission] = Field(default_factory=list)
    created_at: Timestamp | None = None

    @field_validator("permissions", mode="before")
    @classmethod
    def validate_permissions(cls, v: Any) -> Any:
        return _none_as_empty(v)


class User(EntitySchema):
    """An identity holding roles from any number of applications."""

    username: str
    roles: list[Role] = Field(default_factory=list)
    created_at: Timestamp | None = None
    updated_at: Timestamp | None = None

    @field_validator("roles", mode="before")
    @classmethod
    def validate_roles(cls, v: Any) -> Any:
        return _none_as_empty(v)


class MessageResponse(BaseModel):
    """Acknowledgement returned by writes, deletes and the health probe."""

    message: str
