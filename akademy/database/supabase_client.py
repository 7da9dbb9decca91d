from typing import Optional

from supabase import create_client, Client
from akademy.config import settings
from akademy.modules.migration.exceptions import MigrationConfigError


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def _require_config(cls, key: Optional[str] = None) -> None:
        if not settings.supabase_url or not (key or settings.supabase_key):
            raise MigrationConfigError(
                "Supabase URL or key environment variable is missing."
            )

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._require_config()
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Use for auth admin calls and CLI runs."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._require_config(settings.supabase_service_role_key)
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()

    @classmethod
    def get_user_client(cls, token: str) -> Client:
        """Fresh anon client whose table queries carry the caller's token, so RLS applies."""
        cls._require_config()
        client = create_client(settings.supabase_url, settings.supabase_key)
        client.postgrest.auth(token)
        return client

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_supabase_admin() -> Client:
    return SupabaseClient.get_service_client()
