"""
Typed filters for list queries.

Each supported filter is a field on a closed model and maps to exactly one
equality predicate. Unknown filter names are rejected instead of ignored.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from sqlalchemy import ColumnElement

from src.core.errors import MalformedInputError
from src.models.access import RoleRecord


class RoleFilter(BaseModel):
    """Filters accepted by role listing."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    app_id: str | None = None

    @field_validator("app_id", mode="before")
    @classmethod
    def blank_as_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_mapping(cls, filters: Mapping[str, Any] | None) -> "RoleFilter":
        """Build from an ``attribute -> value`` mapping such as query params."""
        try:
            return cls.model_validate(dict(filters or {}))
        except ValidationError as e:
            unknown = [
                ".".join(str(p) for p in err["loc"])
                for err in e.errors()
                if err["type"] == "extra_forbidden"
            ]
            if unknown:
                raise MalformedInputError(
                    f"unsupported role filter(s): {', '.join(sorted(unknown))}"
                ) from e
            raise MalformedInputError(f"invalid role filter: {e}") from e

    def predicates(self) -> Iterator[ColumnElement[bool]]:
        """One bound-parameter predicate per present filter."""
        if self.app_id is not None:
            yield RoleRecord.app_id == self.app_id
