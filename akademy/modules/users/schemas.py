from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from uuid import UUID


class CreateUserFromAgreementRequest(BaseModel):
    agreement_id: UUID


class UserCreationResponse(BaseModel):
    user_id: str
    email: str
    password: str
    headquarter_name: Optional[str] = None
    country_name: Optional[str] = None
    season_name: Optional[str] = None
    role_name: Optional[str] = None
    phone: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    document_number: str = Field(min_length=1)
    new_password: str = Field(min_length=8)
    phone: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class PasswordResetResponse(BaseModel):
    message: str
    new_password: str
    user_email: str


class DeactivateUserRequest(BaseModel):
    user_id: UUID


class DeactivateUserResponse(BaseModel):
    message: str
    user_id: str


class SuperAdminCreateRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    agreement_id: UUID
    role_id: UUID
    headquarter_id: UUID


class SuperAdminResponse(BaseModel):
    user_id: str
    email: str
    agreement_id: str
    role_level: Optional[int] = None


class UserSummary(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    role_level: Optional[int] = None
    agreement_id: Optional[str] = None
    is_super_admin: bool = False
    created_at: Optional[str] = None
    last_sign_in_at: Optional[str] = None
    banned_until: Optional[str] = None
