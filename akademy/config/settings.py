from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key; requests forward the caller's bearer token so RLS applies
    supabase_service_role_key: Optional[str] = None  # Required for auth admin operations and CLI runs

    # Strapi (source CMS)
    strapi_api_url: str = ""
    strapi_api_token: str = ""
    strapi_agreements_endpoint: str = "/api/acuerdo-akademias"
    strapi_page_size: int = 100
    strapi_timeout_seconds: float = 30.0

    # Super credential accepted by the password-gated migration route
    super_password: Optional[str] = None

    # Migration
    migration_batch_size: int = 50
    migration_student_role: str = "alumno"
    migration_active_season_status: str = "active"
    migration_season_failure_policy: str = "skip"  # skip | abort
    migration_record_empty_runs: bool = False
    migration_single_flight: bool = True
    migration_min_role_level: int = 95

    # Role levels for user lifecycle routes
    create_user_min_role_level: int = 30
    reset_password_min_role_level: int = 1
    deactivate_user_min_role_level: int = 50
    admin_min_role_level: int = 80  # agreements CRUD and user listing

    # App
    app_name: str = "akademy-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
