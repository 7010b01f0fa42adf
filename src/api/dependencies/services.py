"""
Service dependencies.
"""

from fastapi import Request

from src.services.access import AccessService


def get_access_service(request: Request) -> AccessService:
    """Access service created at startup and stored on app state."""
    return request.app.state.access_service
