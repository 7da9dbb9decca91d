from fastapi import APIRouter, Depends, Query
from akademy.config import settings
from akademy.database.supabase_client import get_supabase_admin
from akademy.modules.agreements.schemas import AgreementCreate, AgreementUpdate
from akademy.modules.agreements.service import AgreementService, MAX_PAGE_SIZE
from akademy.modules.migration.schemas import AgreementStatus
from akademy.core.dependencies import require_min_role_level
from supabase import Client
from typing import Dict, Optional
from uuid import UUID

router = APIRouter(prefix="/agreements", tags=["agreements"])

require_admin = require_min_role_level(settings.admin_min_role_level)


def get_agreement_service(supabase: Client = Depends(get_supabase_admin)) -> AgreementService:
    return AgreementService(supabase)


@router.get("")
async def list_agreements(
    status: Optional[AgreementStatus] = None,
    headquarter_id: Optional[UUID] = None,
    season_id: Optional[UUID] = None,
    limit: int = Query(default=100, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    user_data: Dict = Depends(require_admin),
    service: AgreementService = Depends(get_agreement_service),
):
    """List agreements (admin)"""
    agreements = service.list_agreements(
        status=status,
        headquarter_id=str(headquarter_id) if headquarter_id else None,
        season_id=str(season_id) if season_id else None,
        limit=limit,
        offset=offset,
    )
    return {"data": agreements}


@router.get("/{agreement_id}")
async def get_agreement(
    agreement_id: UUID,
    user_data: Dict = Depends(require_admin),
    service: AgreementService = Depends(get_agreement_service),
):
    return {"data": service.get_agreement(str(agreement_id))}


@router.post("", status_code=201)
async def create_agreement(
    agreement_data: AgreementCreate,
    user_data: Dict = Depends(require_admin),
    service: AgreementService = Depends(get_agreement_service),
):
    """Create an agreement by hand (admin)"""
    return {"data": service.create_agreement(agreement_data)}


@router.put("/{agreement_id}")
async def update_agreement(
    agreement_id: UUID,
    agreement_data: AgreementUpdate,
    user_data: Dict = Depends(require_admin),
    service: AgreementService = Depends(get_agreement_service),
):
    """Partially update an agreement (admin)"""
    return {"data": service.update_agreement(str(agreement_id), agreement_data)}


@router.delete("/{agreement_id}")
async def delete_agreement(
    agreement_id: UUID,
    user_data: Dict = Depends(require_admin),
    service: AgreementService = Depends(get_agreement_service),
):
    """Delete an agreement (admin)"""
    service.delete_agreement(str(agreement_id))
    return {"success": True}
