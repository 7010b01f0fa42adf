"""Middleware package."""

from src.api.middleware.request_id import RequestIdMiddleware, get_request_id
from src.api.middleware.logging import LoggingMiddleware

__all__ = [
    "RequestIdMiddleware",
    "LoggingMiddleware",
    "get_request_id",
]
