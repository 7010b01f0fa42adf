"""
Request ID middleware.

Every request gets an ID, taken from a well-formed ``X-Request-ID`` header or
freshly generated. It is echoed on the response and bound into structlog's
context, so access service log events emitted while handling the request
carry it.
"""

import re
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Client supplied IDs are copied into every log line
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(header_value: str | None) -> str:
    """Use the client's ID when well formed, otherwise a new UUID4."""
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


def get_request_id() -> str:
    """ID of the request being handled, or "" outside of one."""
    return structlog.contextvars.get_contextvars().get("request_id", "")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request, its log events and its response with an ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
