import logging
import secrets
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import HTTPException
from supabase import Client

from akademy.modules.auth.service import AuthService
from akademy.modules.users.schemas import (
    CreateUserFromAgreementRequest, UserCreationResponse,
    ResetPasswordRequest, PasswordResetResponse,
    DeactivateUserRequest, DeactivateUserResponse,
    SuperAdminCreateRequest, SuperAdminResponse, UserSummary,
)

logger = logging.getLogger(__name__)

PASSWORD_LENGTH = 12
PASSWORD_CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789!@#$%^&*"
# GoTrue expects a Go duration string; 100 years
BAN_DURATION = "876000h"


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Cryptographically secure random password"""
    return "".join(secrets.choice(PASSWORD_CHARSET) for _ in range(length))


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ilike compares the literal text, case-insensitively"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _nested_name(record: Optional[dict]) -> Optional[str]:
    return record.get("name") if record else None


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_user_from_agreement(
        self, request: CreateUserFromAgreementRequest, caller_level: int
    ) -> UserCreationResponse:
        """Create an auth user for a prospect agreement and activate the agreement"""
        agreement_id = str(request.agreement_id)
        try:
            result = self.supabase.table("agreements")\
                .select("*, role:roles(*), headquarter:headquarters(*, country:countries(*)), season:seasons(*)")\
                .eq("id", agreement_id)\
                .eq("status", "prospect")\
                .is_("user_id", "null")\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error loading agreement {agreement_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not result.data:
            raise HTTPException(status_code=404, detail="Agreement not found or already activated")
        agreement = result.data[0]
        role = agreement.get("role") or {}
        headquarter = agreement.get("headquarter") or {}

        role_level = role.get("level")
        if role_level is None or role_level > caller_level:
            raise HTTPException(
                status_code=403,
                detail=f"Cannot create user with role level {role_level}. Your level: {caller_level}"
            )

        password = generate_password()
        try:
            auth_response = self.supabase.auth.admin.create_user({
                "email": agreement["email"],
                "password": password,
                "email_confirm": True,
                "user_metadata": {
                    "role": role.get("code"),
                    "role_level": role_level,
                    "role_id": agreement.get("role_id"),
                    "hq_id": agreement.get("headquarter_id"),
                    "season_id": agreement.get("season_id"),
                    "agreement_id": agreement["id"],
                    "name": agreement.get("name"),
                    "last_name": agreement.get("last_name"),
                    "phone": agreement.get("phone"),
                },
            })
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to create user: {e}")
        if not auth_response or not auth_response.user:
            raise HTTPException(status_code=500, detail="Failed to create user")
        user_id = auth_response.user.id

        try:
            self.supabase.table("agreements")\
                .update({
                    "user_id": user_id,
                    "status": "active",
                    "activation_date": datetime.now(timezone.utc).isoformat(),
                })\
                .eq("id", agreement["id"])\
                .execute()
        except Exception as e:
            # Roll back the auth user so the agreement can be retried
            try:
                self.supabase.auth.admin.delete_user(user_id)
            except Exception as cleanup_error:
                logger.error(f"Failed to delete user {user_id} after agreement update error: {cleanup_error}")
            raise HTTPException(status_code=500, detail=f"Failed to update agreement: {e}")

        return UserCreationResponse(
            user_id=user_id,
            email=agreement["email"],
            password=password,
            headquarter_name=headquarter.get("name"),
            country_name=_nested_name(headquarter.get("country")),
            season_name=_nested_name(agreement.get("season")),
            role_name=role.get("name"),
            phone=agreement.get("phone") or None,
        )

    def reset_password(self, request: ResetPasswordRequest) -> PasswordResetResponse:
        """Set a new password for the user whose agreement matches every identity field"""
        try:
            result = self.supabase.table("agreements")\
                .select("user_id, email")\
                .eq("email", request.email)\
                .eq("document_number", request.document_number)\
                .eq("phone", request.phone)\
                .ilike("name", escape_like(request.first_name))\
                .ilike("last_name", escape_like(request.last_name))\
                .not_.is_("user_id", "null")\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error looking up agreement for password reset: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not result.data:
            raise HTTPException(status_code=404, detail="User not found or data mismatch")
        agreement = result.data[0]

        try:
            self.supabase.auth.admin.update_user_by_id(
                agreement["user_id"], {"password": request.new_password}
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to update password: {e}")

        return PasswordResetResponse(
            message=f"Password successfully updated for user {request.email}",
            new_password=request.new_password,
            user_email=request.email,
        )

    def deactivate_user(self, request: DeactivateUserRequest) -> DeactivateUserResponse:
        """Ban the auth user and mark their agreements inactive"""
        user_id = str(request.user_id)
        try:
            user_response = self.supabase.auth.admin.get_user_by_id(user_id)
        except Exception as e:
            logger.warning(f"Error fetching user {user_id}: {e}")
            user_response = None
        if not user_response or not user_response.user:
            raise HTTPException(status_code=404, detail="User not found")

        try:
            self.supabase.auth.admin.update_user_by_id(user_id, {"ban_duration": BAN_DURATION})
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to deactivate user: {e}")

        try:
            self.supabase.table("agreements")\
                .update({"status": "inactive"})\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            # Non-fatal: the user is already banned
            logger.error(f"Warning: Failed to update agreement status for user {user_id}: {e}")

        return DeactivateUserResponse(
            message=f"User {user_response.user.email} has been deactivated",
            user_id=user_id,
        )

    def list_users(self, page: int = 1, per_page: int = 50) -> List[UserSummary]:
        """List auth users with the role fields kept in their metadata"""
        try:
            users = self.supabase.auth.admin.list_users(page=page, per_page=per_page)
        except Exception as e:
            logger.error(f"Error listing users: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        summaries = []
        for user in users or []:
            metadata = getattr(user, "user_metadata", None) or {}
            summaries.append(UserSummary(
                id=str(user.id),
                email=getattr(user, "email", None),
                role=metadata.get("role"),
                role_level=AuthService.get_role_level({"user_metadata": metadata}),
                agreement_id=metadata.get("agreement_id"),
                is_super_admin=bool(metadata.get("is_super_admin")),
                created_at=_as_text(getattr(user, "created_at", None)),
                last_sign_in_at=_as_text(getattr(user, "last_sign_in_at", None)),
                banned_until=_as_text(getattr(user, "banned_until", None)),
            ))
        return summaries

    def create_super_admin(self, request: SuperAdminCreateRequest) -> SuperAdminResponse:
        """Create a confirmed super-admin auth user and link it to an existing agreement"""
        agreement_id = str(request.agreement_id)
        try:
            agreement = self.supabase.table("agreements")\
                .select("id, user_id")\
                .eq("id", agreement_id)\
                .limit(1)\
                .execute()
            role = self.supabase.table("roles")\
                .select("id, code, level")\
                .eq("id", str(request.role_id))\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error loading agreement {agreement_id} or role {request.role_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not agreement.data:
            raise HTTPException(status_code=404, detail="Agreement not found")
        if agreement.data[0].get("user_id"):
            raise HTTPException(status_code=409, detail="Agreement is already linked to a user")
        if not role.data:
            raise HTTPException(status_code=404, detail="Role not found")
        role_row = role.data[0]

        try:
            auth_response = self.supabase.auth.admin.create_user({
                "email": request.email,
                "password": request.password,
                "email_confirm": True,
                "user_metadata": {
                    "agreement_id": agreement_id,
                    "role_id": str(request.role_id),
                    "role": role_row.get("code"),
                    "role_level": role_row.get("level"),
                    "hq_id": str(request.headquarter_id),
                    "is_super_admin": True,
                },
            })
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to create user: {e}")
        if not auth_response or not auth_response.user:
            raise HTTPException(status_code=500, detail="Failed to create user")
        user_id = auth_response.user.id

        try:
            self.supabase.table("agreements")\
                .update({"user_id": user_id})\
                .eq("id", agreement_id)\
                .execute()
        except Exception as e:
            try:
                self.supabase.auth.admin.delete_user(user_id)
            except Exception as cleanup_error:
                logger.error(f"Failed to delete user {user_id} after agreement update error: {cleanup_error}")
            raise HTTPException(status_code=500, detail=f"Failed to update agreement: {e}")

        logger.info(f"Super admin {user_id} created for agreement {agreement_id}")
        return SuperAdminResponse(
            user_id=user_id,
            email=request.email,
            agreement_id=agreement_id,
            role_level=role_row.get("level"),
        )
