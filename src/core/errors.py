"""
Access service error taxonomy.

Every failure raised by the service layer is an ``AccessError``. The HTTP
layer maps each class to a status code:

- NotFoundError -> 404
- MalformedInputError -> 400
- ConstraintViolationError -> 409
- TransientError -> 503
- AccessError (anything else) -> 500

Storage exceptions are wrapped with ``classify_error`` and chained, so the
original driver error stays available as ``__cause__``.
"""

import asyncio

from sqlalchemy import exc as sa_exc


class AccessError(Exception):
    """Base class for access service failures."""

    code = "storage_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AccessError):
    """A single-entity read matched zero rows."""

    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, **key: str):
        ident = ", ".join(f"{k}={v!r}" for k, v in key.items())
        super().__init__(f"{entity} not found ({ident})")
        self.entity = entity
        self.key = key


class MalformedInputError(AccessError):
    """Input rejected before any statement was issued."""

    code = "malformed_input"
    status_code = 400


class ConstraintViolationError(AccessError):
    """A write violated a uniqueness or foreign-key rule."""

    code = "constraint_violation"
    status_code = 409


class TransientError(AccessError):
    """Pool exhaustion, timeout or lost connection. Safe to retry."""

    code = "transient_error"
    status_code = 503


def classify_error(exc: BaseException) -> AccessError:
    """Translate a storage or asyncio exception into the taxonomy."""
    if isinstance(exc, AccessError):
        return exc

    if isinstance(exc, sa_exc.IntegrityError):
        return ConstraintViolationError(_describe(exc))

    if isinstance(exc, (sa_exc.TimeoutError, asyncio.TimeoutError, TimeoutError)):
        return TransientError(f"operation timed out: {_describe(exc)}")

    if isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError)):
        return TransientError(_describe(exc))

    # Raised unwrapped by the driver while connecting
    if isinstance(exc, OSError):
        return TransientError(f"connection failed: {_describe(exc)}")

    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return TransientError(_describe(exc))

    return AccessError(_describe(exc))


def _describe(exc: BaseException) -> str:
    # DBAPIError.orig carries the driver message without the SQL text
    orig = getattr(exc, "orig", None)
    text = str(orig) if orig is not None else str(exc)
    return text or exc.__class__.__name__
