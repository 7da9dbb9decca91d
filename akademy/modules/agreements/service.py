import logging
from typing import List, Optional

from fastapi import HTTPException
from supabase import Client

from akademy.modules.agreements.schemas import AgreementCreate, AgreementUpdate

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000


def _is_unique_violation(error: Exception) -> bool:
    message = str(error).lower()
    return "duplicate key" in message or "23505" in message


class AgreementService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_agreements(
        self,
        status: Optional[str] = None,
        headquarter_id: Optional[str] = None,
        season_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[dict]:
        """List agreements, newest first, optionally filtered"""
        try:
            query = self.supabase.table("agreements").select("*")
            if status:
                query = query.eq("status", status)
            if headquarter_id:
                query = query.eq("headquarter_id", headquarter_id)
            if season_id:
                query = query.eq("season_id", season_id)
            result = query.order("created_at", desc=True)\
                .limit(min(limit, MAX_PAGE_SIZE))\
                .offset(offset)\
                .execute()
        except Exception as e:
            logger.error(f"Error listing agreements: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")
        return result.data or []

    def get_agreement(self, agreement_id: str) -> dict:
        """Get agreement by ID"""
        try:
            result = self.supabase.table("agreements")\
                .select("*")\
                .eq("id", agreement_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error loading agreement {agreement_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not result.data:
            raise HTTPException(status_code=404, detail="Agreement not found")
        return result.data[0]

    def create_agreement(self, agreement_data: AgreementCreate) -> dict:
        """Insert one agreement; a unique email or document number clash is a 409"""
        try:
            result = self.supabase.table("agreements")\
                .insert(agreement_data.model_dump(mode="json"))\
                .execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise HTTPException(
                    status_code=409,
                    detail="An agreement with this email or document number already exists",
                )
            logger.error(f"Error creating agreement: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create agreement")
        return result.data[0]

    def update_agreement(self, agreement_id: str, agreement_data: AgreementUpdate) -> dict:
        """Update only the fields present in the request"""
        update_data = agreement_data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No fields to update")

        try:
            result = self.supabase.table("agreements")\
                .update(update_data)\
                .eq("id", agreement_id)\
                .execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise HTTPException(
                    status_code=409,
                    detail="An agreement with this email or document number already exists",
                )
            logger.error(f"Error updating agreement {agreement_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not result.data:
            raise HTTPException(status_code=404, detail="Agreement not found")
        return result.data[0]

    def delete_agreement(self, agreement_id: str) -> None:
        try:
            result = self.supabase.table("agreements")\
                .delete()\
                .eq("id", agreement_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error deleting agreement {agreement_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        if not result.data:
            raise HTTPException(status_code=404, detail="Agreement not found")
