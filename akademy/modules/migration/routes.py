import logging
from typing import Dict, Iterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from supabase import Client

from akademy.config import settings
from akademy.core.dependencies import get_bearer_token, require_min_role_level, verify_super_password
from akademy.database.supabase_client import SupabaseClient
from akademy.modules.migration.exceptions import (
    MigrationConfigError,
    MigrationError,
    MigrationInProgressError,
)
from akademy.modules.migration.service import MigrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/migration", tags=["migration"])


def get_caller_supabase(token: str = Depends(get_bearer_token)) -> Client:
    """Store client acting as the caller, so row-level security applies to the migration."""
    return SupabaseClient.get_user_client(token)


def get_admin_supabase() -> Client:
    return SupabaseClient.get_service_client()


def _close_after(service: MigrationService) -> Iterator[MigrationService]:
    try:
        yield service
    finally:
        service.close()


def get_migration_service(supabase: Client = Depends(get_caller_supabase)) -> Iterator[MigrationService]:
    yield from _close_after(MigrationService.from_settings(supabase))


def get_admin_migration_service(supabase: Client = Depends(get_admin_supabase)) -> Iterator[MigrationService]:
    yield from _close_after(MigrationService.from_settings(supabase))


def _execute(service: MigrationService) -> JSONResponse:
    try:
        result = service.run()
    except MigrationInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except MigrationConfigError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except MigrationError as e:
        logger.error(f"Migration error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except Exception as e:
        logger.exception(f"Migration error: {e}")
        detail = "Internal server error" if settings.is_production else (str(e) or "Migration failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

    return JSONResponse(
        status_code=status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=result.to_response(),
    )


# Sync handlers so the blocking run executes in the threadpool, not on the event loop
@router.post("/migrate")
def migrate(
    user_data: Dict = Depends(require_min_role_level(settings.migration_min_role_level)),
    service: MigrationService = Depends(get_migration_service),
):
    """Run an incremental Strapi -> Supabase agreements migration as the calling user"""
    logger.info(f"Migration requested by user {user_data['id']} (level {user_data['role_level']})")
    return _execute(service)


@router.post("/migrate/super", dependencies=[Depends(verify_super_password)])
def migrate_with_super_password(
    service: MigrationService = Depends(get_admin_migration_service),
):
    """Run the migration with the service-role client; gated by the x-super-password header"""
    logger.info("Migration requested with super password")
    return _execute(service)
