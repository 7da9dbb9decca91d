from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Literal, Any

AgreementStatus = Literal["prospect", "active", "inactive", "graduated"]
LedgerStatus = Literal["success", "failed"]

EXCLUDED_REASON = (
    "Agreements with the same email or document number already exist in the database"
)


def parse_boolean(value: Any) -> Optional[bool]:
    """Coerce the loosely typed consent flags Strapi returns. Unknown values become None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "yes", "1"):
            return True
        if normalized in ("false", "no", "0"):
            return False
        return None
    if isinstance(value, (int, float)):
        return value != 0
    return None


class StrapiAgreement(BaseModel):
    """A flattened Strapi "acuerdo-akademia" entry. Read-only once fetched."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: Optional[int] = None
    email: Optional[str] = None
    document_number: Optional[str] = Field(default=None, alias="documentNumber")
    phone: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    head_quarters: Optional[str] = Field(default=None, alias="headQuarters")
    role: Optional[str] = None
    name: Optional[str] = None
    last_name: Optional[str] = Field(default=None, alias="lastName")
    country: Optional[str] = None
    address: Optional[str] = None
    volunteering_agreement: Optional[bool] = Field(default=None, alias="volunteeringAgreement")
    ethical_document_agreement: Optional[bool] = Field(default=None, alias="ethicalDocumentAgreement")
    mailing_agreement: Optional[bool] = Field(default=None, alias="mailingAgreement")
    age_verification: Optional[bool] = Field(default=None, alias="ageVerification")
    sign_data_path: Optional[str] = Field(default=None, alias="signDataPath")

    @field_validator(
        "volunteering_agreement",
        "ethical_document_agreement",
        "mailing_agreement",
        "age_verification",
        mode="before",
    )
    @classmethod
    def _coerce_flag(cls, value: Any) -> Optional[bool]:
        return parse_boolean(value)

    @field_validator("document_number", "phone", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        # Strapi number fields arrive as ints for some legacy entries
        if value is None or isinstance(value, str):
            return value
        return str(value)


class SupabaseAgreement(BaseModel):
    """Row destined for the agreements table."""

    headquarter_id: Optional[str] = None
    season_id: Optional[str] = None
    role_id: Optional[str] = None
    user_id: Optional[str] = None
    status: AgreementStatus = "prospect"
    email: Optional[str] = None
    document_number: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    created_at: str
    updated_at: str
    volunteering_agreement: Optional[bool] = None
    ethical_document_agreement: Optional[bool] = None
    mailing_agreement: Optional[bool] = None
    age_verification: Optional[bool] = None
    signature_data: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.headquarter_id and self.role_id and self.season_id)


class ExistingAgreement(BaseModel):
    email: Optional[str] = None
    document_number: Optional[str] = None


class MigrationStatistics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    strapi_count: int = Field(alias="strapiCount")
    supabase_inserted: int = Field(alias="supabaseInserted")
    transformed_count: int = Field(alias="transformedCount")
    excluded_count: int = Field(alias="excludedCount")
    excluded_reason: str = Field(default=EXCLUDED_REASON, alias="excludedReason")
    difference: int
    unresolved_count: int = Field(default=0, alias="unresolvedCount")
    duplicate_count: int = Field(default=0, alias="duplicateCount")


class MigrationResult(BaseModel):
    success: bool
    message: str
    statistics: MigrationStatistics
    data: Optional[List[dict]] = None
    error: Optional[str] = None

    def to_response(self) -> dict:
        """Response body: `data` on success, `error` on failure, camelCase statistics."""
        body = self.model_dump(by_alias=True, exclude={"data", "error"})
        if self.data is not None:
            body["data"] = self.data
        if self.error is not None:
            body["error"] = self.error
        return body


class MigrationLedgerEntry(BaseModel):
    id: Optional[int] = None
    last_migrated_at: str
    status: LedgerStatus
    records_processed: int = 0
    error_message: Optional[str] = None
    migration_timestamp: Optional[str] = None
    created_at: Optional[str] = None
