"""Admin endpoints - Team user management (service role)"""
from fastapi import APIRouter, Depends
from typing import Dict, List
import logging

from workdesk.dependencies import get_auth_service
from workdesk.middleware.auth import get_current_user
from workdesk.models.auth import AdminUserCreate, AdminUserUpdate, SupabaseUser
from workdesk.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/users", response_model=List[SupabaseUser])
async def list_users(
    page: int = 1,
    per_page: int = 50,
    auth_data: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """List auth users; empty when the admin API is unavailable"""
    return await auth_service.list_users(page=page, per_page=per_page)


@router.post("/users", response_model=SupabaseUser)
async def create_user(
    user: AdminUserCreate,
    auth_data: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Create a team member login"""
    created = await auth_service.create_user(user)
    logger.info(f"User {created.id} created by {auth_data['user_id']}")
    return created


@router.put("/users/{user_id}", response_model=SupabaseUser)
async def update_user(
    user_id: str,
    changes: AdminUserUpdate,
    auth_data: Dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    return await auth_service.update_user(user_id, changes)
