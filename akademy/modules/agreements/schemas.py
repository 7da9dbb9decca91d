from pydantic import BaseModel, EmailStr
from typing import Optional
from uuid import UUID

from akademy.modules.migration.schemas import AgreementStatus


class AgreementCreate(BaseModel):
    role_id: UUID
    headquarter_id: UUID
    season_id: Optional[UUID] = None
    status: AgreementStatus = "prospect"
    email: EmailStr
    document_number: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    volunteering_agreement: bool = False
    ethical_document_agreement: bool = False
    mailing_agreement: bool = False
    age_verification: bool = False
    signature_data: Optional[str] = None


class AgreementUpdate(BaseModel):
    role_id: Optional[UUID] = None
    headquarter_id: Optional[UUID] = None
    season_id: Optional[UUID] = None
    status: Optional[AgreementStatus] = None
    email: Optional[EmailStr] = None
    document_number: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    volunteering_agreement: Optional[bool] = None
    ethical_document_agreement: Optional[bool] = None
    mailing_agreement: Optional[bool] = None
    age_verification: Optional[bool] = None
    signature_data: Optional[str] = None
