"""
Permission routes.
"""

from fastapi import APIRouter, Depends

from src.api.dependencies.services import get_access_service
from src.schemas.access import MessageResponse, Permission
from src.services.access import AccessService

router = APIRouter()


@router.get("", response_model=list[Permission])
async def list_permissions(service: AccessService = Depends(get_access_service)):
    """List all permissions."""
    return await service.get_perms()


@router.get("/{perm_id}/{app_id}", response_model=Permission)
async def get_permission(
    perm_id: str,
    app_id: str,
    service: AccessService = Depends(get_access_service),
):
    """Get permission by ID within an application."""
    return await service.get_perm(perm_id, app_id)


@router.post("", response_model=MessageResponse)
async def upsert_permission(
    perm: Permission,
    service: AccessService = Depends(get_access_service),
):
    """Create or update a permission."""
    await service.upsert_perm(perm)
    return MessageResponse(message="ok")


@router.delete("/{perm_id}/{app_id}", response_model=MessageResponse)
async def delete_permission(
    perm_id: str,
    app_id: str,
    service: AccessService = Depends(get_access_service),
):
    """Delete a permission and its role links."""
    await service.delete_perm(perm_id, app_id)
    return MessageResponse(message="ok")
