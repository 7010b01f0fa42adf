"""
API routes aggregation.
"""

from fastapi import APIRouter

from .apps import router as apps_router
from .permissions import router as permissions_router
from .roles import router as roles_router
from .users import router as users_router

router = APIRouter()

router.include_router(apps_router, prefix="/apps", tags=["apps"])
router.include_router(permissions_router, prefix="/permissions", tags=["permissions"])
router.include_router(roles_router, prefix="/roles", tags=["roles"])
router.include_router(users_router, prefix="/users", tags=["users"])
