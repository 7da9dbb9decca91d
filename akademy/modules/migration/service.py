"""
Strapi -> Supabase agreement migration.

One run: read the ledger's last successful timestamp, fetch the incremental
window from Strapi, preload the headquarters/roles lookups, match and insert,
then append the outcome to the ledger.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

import httpx
from supabase import Client

from akademy.config import settings
from akademy.modules.migration.agreement_checks import AgreementChecker
from akademy.modules.migration.exceptions import MigrationConfigError, MigrationInProgressError
from akademy.modules.migration.ledger_service import MigrationLedger
from akademy.modules.migration.mapping_service import MappingService
from akademy.modules.migration.schemas import MigrationLedgerEntry, MigrationResult, StrapiAgreement
from akademy.modules.migration.strapi_service import StrapiService
from akademy.modules.migration.supabase_service import SupabaseService
from akademy.modules.migration.utils import format_iso, parse_timestamp

logger = logging.getLogger(__name__)

# Single-flight guard shared by every MigrationService in this process
_run_lock = threading.Lock()


def collect_labels(agreements: List[StrapiAgreement]) -> Tuple[Set[str], Set[str]]:
    """Distinct trimmed, lower-cased headquarters and role labels present in the batch."""
    headquarters: Set[str] = set()
    roles: Set[str] = set()
    for agreement in agreements:
        if agreement.head_quarters:
            headquarters.add(agreement.head_quarters.strip().lower())
        if agreement.role:
            roles.add(agreement.role.strip().lower())
    return headquarters, roles


def most_recent_timestamp(agreements: List[StrapiAgreement]) -> Optional[str]:
    """Newest updatedAt (or createdAt when missing) across the batch, as ISO-8601."""
    timestamps = [
        parse_timestamp(a.updated_at or a.created_at) for a in agreements
    ]
    timestamps = [t for t in timestamps if t is not None]
    if not timestamps:
        return None
    return format_iso(max(timestamps))


class MigrationService:
    def __init__(
        self,
        supabase: Client,
        strapi_service: StrapiService,
        endpoint: str = "/api/acuerdo-akademias",
        batch_size: int = 50,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        student_role: str = "alumno",
        active_season_status: str = "active",
        season_failure_policy: str = "skip",
        record_empty_runs: bool = False,
        single_flight: bool = True,
    ):
        self.supabase = supabase
        self.strapi_service = strapi_service
        self.endpoint = endpoint
        self.now = now
        self.record_empty_runs = record_empty_runs
        self.single_flight = single_flight
        self.ledger = MigrationLedger(supabase)
        self.supabase_service = SupabaseService(supabase, batch_size=batch_size)
        self.mapping_service = MappingService(
            self.supabase_service,
            AgreementChecker(supabase, batch_size=batch_size),
            now=now,
            student_role=student_role,
            active_season_status=active_season_status,
            season_failure_policy=season_failure_policy,
        )

    @classmethod
    def from_settings(cls, supabase: Client, http_client: Optional[httpx.Client] = None) -> "MigrationService":
        """Build a service from application settings. Missing Strapi config raises before any I/O."""
        if not settings.strapi_api_url or not settings.strapi_api_token:
            raise MigrationConfigError("Strapi API URL or Token environment variable is missing.")
        strapi_service = StrapiService(
            settings.strapi_api_url,
            settings.strapi_api_token,
            http_client=http_client,
            page_size=settings.strapi_page_size,
            timeout=settings.strapi_timeout_seconds,
        )
        return cls(
            supabase,
            strapi_service,
            endpoint=settings.strapi_agreements_endpoint,
            batch_size=settings.migration_batch_size,
            student_role=settings.migration_student_role,
            active_season_status=settings.migration_active_season_status,
            season_failure_policy=settings.migration_season_failure_policy,
            record_empty_runs=settings.migration_record_empty_runs,
            single_flight=settings.migration_single_flight,
        )

    def close(self) -> None:
        """Release the Strapi HTTP connection pool."""
        self.strapi_service.close()

    def preload_lookups(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Load the roles and headquarters maps concurrently. Either failure fails the run."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="lookup-preload") as executor:
            roles_future = executor.submit(self.supabase_service.preload_lookup_table, "roles", "name")
            headquarters_future = executor.submit(self.supabase_service.preload_lookup_table, "headquarters", "name")
            return roles_future.result(), headquarters_future.result()

    def run(self) -> MigrationResult:
        """Execute one migration run. Raises MigrationInProgressError if another run holds the guard."""
        if not self.single_flight:
            return self._run()
        if not _run_lock.acquire(blocking=False):
            raise MigrationInProgressError("A migration run is already in progress")
        try:
            return self._run()
        finally:
            _run_lock.release()

    def _run(self) -> MigrationResult:
        run_time = self.now()
        last_migrated_at = self.ledger.get_last_successful_timestamp()
        logger.info(f"Last successful migration timestamp: {last_migrated_at or 'None (fetching all records)'}")

        strapi_agreements = self.strapi_service.fetch_all_agreements(self.endpoint, last_migrated_at)
        headquarters_set, roles_set = collect_labels(strapi_agreements)
        logger.info(f"Roles size in strapi: {len(roles_set)}")
        logger.info(f"Headquarters size in strapi: {len(headquarters_set)}")

        roles_map, headquarters_map = self.preload_lookups()

        result = self.mapping_service.match_data(
            strapi_agreements,
            headquarters_set,
            roles_set,
            roles_map,
            headquarters_map,
            run_time=run_time,
        )
        logger.info(f"Migration statistics: {result.statistics.model_dump(by_alias=True)}")

        self.record_outcome(result, strapi_agreements, run_time)
        return result

    def record_outcome(
        self, result: MigrationResult, strapi_agreements: List[StrapiAgreement], run_time: datetime
    ) -> Optional[MigrationLedgerEntry]:
        """Append the run outcome to the ledger. A failed write is logged and does not change the result."""
        if not result.success:
            entry = MigrationLedgerEntry(
                last_migrated_at=format_iso(self.now()),
                status="failed",
                records_processed=0,
                error_message=result.error or "Unknown error",
            )
        elif strapi_agreements:
            entry = MigrationLedgerEntry(
                last_migrated_at=most_recent_timestamp(strapi_agreements) or format_iso(run_time),
                status="success",
                records_processed=result.statistics.supabase_inserted,
            )
        elif self.record_empty_runs:
            entry = MigrationLedgerEntry(
                last_migrated_at=format_iso(run_time),
                status="success",
                records_processed=0,
            )
        else:
            logger.info("No records fetched; migration ledger not updated")
            return None

        stored = self.ledger.record_migration(entry)
        logger.info(f"Migration record saved: {'Success' if stored else 'Failed'} ({entry.status})")
        return stored
