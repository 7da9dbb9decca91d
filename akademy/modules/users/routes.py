from fastapi import APIRouter, Depends, Query
from akademy.config import settings
from akademy.database.supabase_client import get_supabase_admin
from akademy.modules.users.schemas import (
    CreateUserFromAgreementRequest, ResetPasswordRequest, DeactivateUserRequest,
    SuperAdminCreateRequest,
)
from akademy.modules.users.service import UserService
from akademy.core.dependencies import require_min_role_level, verify_super_password
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase_admin)) -> UserService:
    return UserService(supabase)


@router.get("")
async def list_users(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=1000),
    user_data: Dict = Depends(require_min_role_level(settings.admin_min_role_level)),
    service: UserService = Depends(get_user_service),
):
    """List auth users with their role metadata (admin)"""
    return {"data": [u.model_dump() for u in service.list_users(page=page, per_page=per_page)]}


@router.post("/create-user", status_code=201)
async def create_user(
    request: CreateUserFromAgreementRequest,
    user_data: Dict = Depends(require_min_role_level(settings.create_user_min_role_level)),
    service: UserService = Depends(get_user_service),
):
    """Create an auth user from a prospect agreement (caller level must cover the agreement's role)"""
    result = service.create_user_from_agreement(request, user_data["role_level"])
    return {"data": result.model_dump()}


@router.post("/super-admin", status_code=201, dependencies=[Depends(verify_super_password)])
async def create_super_admin(
    request: SuperAdminCreateRequest,
    service: UserService = Depends(get_user_service),
):
    """Create a super-admin linked to an agreement; gated by the x-super-password header"""
    return {"data": service.create_super_admin(request).model_dump()}


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    user_data: Dict = Depends(require_min_role_level(settings.reset_password_min_role_level)),
    service: UserService = Depends(get_user_service),
):
    """Reset a user's password after matching their agreement identity fields"""
    return {"data": service.reset_password(request).model_dump()}


@router.post("/deactivate-user")
async def deactivate_user(
    request: DeactivateUserRequest,
    user_data: Dict = Depends(require_min_role_level(settings.deactivate_user_min_role_level)),
    service: UserService = Depends(get_user_service),
):
    """Ban a user and mark their agreements inactive"""
    return {"data": service.deactivate_user(request).model_dump()}
