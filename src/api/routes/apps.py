"""
Application routes.
"""

from fastapi import APIRouter, Depends

from src.api.dependencies.services import get_access_service
from src.schemas.access import Application, MessageResponse
from src.services.access import AccessService

router = APIRouter()


@router.get("", response_model=list[Application])
async def list_apps(service: AccessService = Depends(get_access_service)):
    """List all applications."""
    return await service.get_apps()


@router.get("/{app_id}", response_model=Application)
async def get_app(app_id: str, service: AccessService = Depends(get_access_service)):
    """Get application by ID."""
    return await service.get_app(app_id)


@router.post("", response_model=MessageResponse)
async def upsert_app(
    app: Application,
    service: AccessService = Depends(get_access_service),
):
    """Create or update an application."""
    await service.upsert_app(app)
    return MessageResponse(message="ok")


@router.delete("/{app_id}", response_model=MessageResponse)
async def delete_app(app_id: str, service: AccessService = Depends(get_access_service)):
    """Delete an application with its permissions and roles."""
    await service.delete_app(app_id)
    return MessageResponse(message="ok")
