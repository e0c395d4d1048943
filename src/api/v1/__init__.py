"""
API v1 package.

Contains versioned account lifecycle routes for buyers, sellers and admins.
"""

from fastapi import APIRouter

from src.api.v1.routes import build_role_router
from src.domain.roles import ADMIN, BUYER, SELLER

router = APIRouter()
router.include_router(build_role_router(BUYER), prefix="/buyers")
router.include_router(build_role_router(SELLER), prefix="/sellers")
router.include_router(build_role_router(ADMIN), prefix="/admins")

__all__ = ["build_role_router", "router"]
