import logging
from typing import Optional

from supabase import Client

from akademy.modules.migration.schemas import MigrationLedgerEntry

logger = logging.getLogger(__name__)

LEDGER_TABLE = "strapi_migrations"


class MigrationLedger:
    """Append-only record of migration runs. Neither method raises."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_last_successful_timestamp(self) -> Optional[str]:
        """last_migrated_at of the newest successful run, or None (fetch everything) on any error."""
        try:
            result = self.supabase.table(LEDGER_TABLE)\
                .select("last_migrated_at")\
                .eq("status", "success")\
                .order("migration_timestamp", desc=True)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching last migration timestamp: {e}")
            return None

        if not result.data:
            return None
        return result.data[0].get("last_migrated_at")

    def record_migration(self, entry: MigrationLedgerEntry) -> Optional[MigrationLedgerEntry]:
        """Append one entry. Returns the stored row, or None when the write failed."""
        payload = entry.model_dump(exclude_none=True, exclude={"id", "created_at"})
        try:
            result = self.supabase.table(LEDGER_TABLE)\
                .insert(payload)\
                .execute()
        except Exception as e:
            logger.error(f"Error recording migration: {e}")
            return None

        if not result.data:
            logger.error("Error recording migration: no row returned")
            return None
        return MigrationLedgerEntry(**result.data[0])
