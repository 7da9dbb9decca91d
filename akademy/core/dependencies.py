"""
Core dependencies for route protection and role-level checking
"""

import hmac
import logging
from typing import Dict, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client

from akademy.config import settings
from akademy.database.supabase_client import get_supabase
from akademy.modules.auth.service import AuthService

logger = logging.getLogger(__name__)

# auto_error=False so a missing header yields 401 rather than FastAPI's default
security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> str:
    """Extract the bearer token from the Authorization header"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
        )
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Resolve the caller from the JWT token"""
    return auth_service.get_current_user(token)


def require_min_role_level(min_level: int):
    """Factory function to create a minimum role level dependency"""
    def check_role_level(user_data: Dict = Depends(get_current_user)) -> dict:
        user_level = AuthService.get_role_level(user_data)
        if user_level is None:
            logger.warning(f"No role_level in user metadata for user {user_data.get('id')}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token or user not found",
            )
        if user_level < min_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required level: {min_level}, your level: {user_level}",
            )
        return {**user_data, "role_level": user_level}
    return check_role_level


def verify_super_password(
    x_super_password: Optional[str] = Header(default=None, alias="x-super-password"),
) -> None:
    """Constant-time check of the x-super-password header against SUPER_PASSWORD"""
    if not settings.super_password:
        logger.error("SUPER_PASSWORD environment variable is not set")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    provided = (x_super_password or "").encode()
    if not hmac.compare_digest(provided, settings.super_password.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
