"""
User routes.
"""

from fastapi import APIRouter, Depends

from src.api.dependencies.services import get_access_service
from src.schemas.access import MessageResponse, User
from src.services.access import AccessService

router = APIRouter()


@router.get("", response_model=list[User])
async def list_users(service: AccessService = Depends(get_access_service)):
    """List users with their roles, most recently updated first."""
    return await service.get_users()


@router.get("/{username}", response_model=User)
async def get_user(username: str, service: AccessService = Depends(get_access_service)):
    """Get user by username."""
    return await service.get_user(username)


@router.post("", response_model=MessageResponse)
async def upsert_user(
    user: User,
    service: AccessService = Depends(get_access_service),
):
    """Create or update a user, replacing its role set."""
    await service.upsert_user(user)
    return MessageResponse(message="ok")


@router.delete("/{username}", response_model=MessageResponse)
async def delete_user(username: str, service: AccessService = Depends(get_access_service)):
    """Delete a user and its role links."""
    await service.delete_user(username)
    return MessageResponse(message="ok")
