"""
Role routes.
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies.services import get_access_service
from src.schemas.access import MessageResponse, Role
from src.services.access import AccessService

router = APIRouter()


@router.get("", response_model=list[Role])
async def list_roles(
    request: Request,
    service: AccessService = Depends(get_access_service),
):
    """
    List roles with their permissions.

    Query parameters are role filters; only ``app_id`` is supported and
    anything else is rejected with 400.
    """
    return await service.get_roles(dict(request.query_params))


@router.get("/{role_id}/{app_id}", response_model=Role)
async def get_role(
    role_id: str,
    app_id: str,
    service: AccessService = Depends(get_access_service),
):
    """Get role by ID within an application."""
    return await service.get_role(role_id, app_id)


@router.post("", response_model=MessageResponse)
async def upsert_role(
    role: Role,
    service: AccessService = Depends(get_access_service),
):
    """Create or update a role, replacing its permission set."""
    await service.upsert_role(role)
    return MessageResponse(message="ok")


@router.delete("/{role_id}/{app_id}", response_model=MessageResponse)
async def delete_role(
    role_id: str,
    app_id: str,
    service: AccessService = Depends(get_access_service),
):
    """Delete a role and its permission and user links."""
    await service.delete_role(role_id, app_id)
    return MessageResponse(message="ok")
