import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from akademy.modules.migration.agreement_checks import AgreementChecker
from akademy.modules.migration.exceptions import SeasonResolutionError
from akademy.modules.migration.normalization import Domain, normalize_label, normalize_text
from akademy.modules.migration.schemas import (
    AgreementStatus,
    MigrationResult,
    MigrationStatistics,
    StrapiAgreement,
    SupabaseAgreement,
)
from akademy.modules.migration.supabase_service import SupabaseService
from akademy.modules.migration.utils import format_iso_date, parse_timestamp

logger = logging.getLogger(__name__)

GRADUATION_AGE = timedelta(days=365)
SEASON_FAILURE_POLICIES = ("skip", "abort")


def build_merged_map(
    labels: Iterable[str], canonical_map: Dict[str, str], domain: Domain
) -> Dict[str, Optional[str]]:
    """Map each distinct source label (base-normalized) to its canonical id, or None when unknown."""
    return {
        normalize_text(label): canonical_map.get(normalize_label(label, domain))
        for label in labels
    }


def resolve_label(
    label: Optional[str],
    merged_map: Dict[str, Optional[str]],
    canonical_map: Dict[str, str],
    domain: Domain,
) -> Optional[str]:
    """Merged-map lookup, then a direct alias-aware lookup for labels the pre-pass never saw."""
    resolved = merged_map.get(normalize_text(label))
    if resolved:
        return resolved
    return canonical_map.get(normalize_label(label, domain))


def derive_status(
    role_id: Optional[str],
    student_role_id: Optional[str],
    created_at: Optional[str],
    now: datetime,
) -> AgreementStatus:
    """Students created more than a year before `now` have graduated; everyone else is a prospect."""
    if not student_role_id or role_id != student_role_id:
        return "prospect"
    created = parse_timestamp(created_at)
    if created is None:
        logger.warning(f"Failed to parse date: {created_at!r}; treating record as new")
        return "prospect"
    return "graduated" if created < now - GRADUATION_AGE else "prospect"


class MappingService:
    """Resolves Strapi agreements to canonical ids, filters duplicates and inserts the rest."""

    def __init__(
        self,
        supabase_service: SupabaseService,
        agreement_checker: AgreementChecker,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        student_role: str = "alumno",
        active_season_status: str = "active",
        season_failure_policy: str = "skip",
    ):
        if season_failure_policy not in SEASON_FAILURE_POLICIES:
            raise ValueError(f"Unknown season failure policy: {season_failure_policy}")
        self.supabase_service = supabase_service
        self.agreement_checker = agreement_checker
        self.now = now
        self.student_role = student_role
        self.active_season_status = active_season_status
        self.season_failure_policy = season_failure_policy

    def _resolve_seasons(
        self, agreements: List[StrapiAgreement], headquarter_ids: List[Optional[str]]
    ) -> List[Optional[str]]:
        seasons, failures = self.supabase_service.get_active_season_ids(
            headquarter_ids, self.active_season_status
        )
        if failures and self.season_failure_policy == "abort":
            raise SeasonResolutionError(next(iter(failures.values())))

        season_ids: List[Optional[str]] = []
        for agreement, hq in zip(agreements, headquarter_ids):
            if hq and hq in failures:
                logger.error(f"[ERROR] Agreement ID {agreement.id}: {failures[hq]}")
            season_ids.append(seasons.get(hq) if hq else None)
        return season_ids

    def build_agreements(
        self,
        strapi_agreements: List[StrapiAgreement],
        headquarters_set: Iterable[str],
        roles_set: Iterable[str],
        roles_map: Dict[str, str],
        headquarters_map: Dict[str, str],
        run_time: datetime,
    ) -> List[SupabaseAgreement]:
        """Transform every source record. Unresolved ids stay None and are excluded later."""
        merged_headquarters = build_merged_map(headquarters_set, headquarters_map, "headquarters")
        merged_roles = build_merged_map(roles_set, roles_map, "roles")
        logger.info(f"Merged Headquarters Map Size: {len(merged_headquarters)}")
        logger.info(f"Merged Roles Map size: {len(merged_roles)}")

        student_role_id = roles_map.get(normalize_text(self.student_role))
        if not student_role_id:
            logger.warning(f"Student role '{self.student_role}' not found; all statuses will be prospect")

        headquarter_ids: List[Optional[str]] = []
        role_ids: List[Optional[str]] = []
        for agreement in strapi_agreements:
            hq_id = resolve_label(agreement.head_quarters, merged_headquarters, headquarters_map, "headquarters")
            role_id = resolve_label(agreement.role, merged_roles, roles_map, "roles")
            if not hq_id:
                logger.error(
                    f'[ERROR] Agreement ID {agreement.id}: Headquarters "{agreement.head_quarters}" not found in mapping'
                )
            if not role_id:
                logger.error(f'[ERROR] Agreement ID {agreement.id}: Role "{agreement.role}" not found in mapping')
            headquarter_ids.append(hq_id)
            role_ids.append(role_id)

        season_ids = self._resolve_seasons(strapi_agreements, headquarter_ids)

        results: List[SupabaseAgreement] = []
        for agreement, hq_id, role_id, season_id in zip(strapi_agreements, headquarter_ids, role_ids, season_ids):
            results.append(SupabaseAgreement(
                headquarter_id=hq_id,
                season_id=season_id,
                role_id=role_id,
                user_id=None,
                status=derive_status(role_id, student_role_id, agreement.created_at, run_time),
                email=agreement.email.strip() if agreement.email else None,
                document_number=agreement.document_number,
                phone=agreement.phone,
                name=agreement.name,
                last_name=agreement.last_name,
                address=agreement.address,
                created_at=format_iso_date(agreement.created_at, run_time),
                updated_at=format_iso_date(agreement.updated_at, run_time),
                volunteering_agreement=agreement.volunteering_agreement,
                ethical_document_agreement=agreement.ethical_document_agreement,
                mailing_agreement=agreement.mailing_agreement,
                age_verification=agreement.age_verification,
                signature_data=agreement.sign_data_path,
            ))
        return results

    def match_data(
        self,
        strapi_agreements: List[StrapiAgreement],
        headquarters_set: Iterable[str],
        roles_set: Iterable[str],
        roles_map: Dict[str, str],
        headquarters_map: Dict[str, str],
        run_time: Optional[datetime] = None,
    ) -> MigrationResult:
        """Build, filter and insert. Insert failures are returned as a failed result, not raised."""
        run_time = run_time or self.now()
        supabase_agreements = self.build_agreements(
            strapi_agreements, headquarters_set, roles_set, roles_map, headquarters_map, run_time
        )
        strapi_count = len(strapi_agreements)

        existing = []
        if supabase_agreements:
            existing = self.agreement_checker.check_existing_agreements_in_batches(
                [a.email for a in supabase_agreements],
                [a.document_number for a in supabase_agreements],
            )
        existing_emails = {a.email.strip().lower() for a in existing if a.email}
        existing_docs = {a.document_number.strip().lower() for a in existing if a.document_number}

        filtered_agreements: List[SupabaseAgreement] = []
        unresolved_count = 0
        duplicate_count = 0
        for agreement in supabase_agreements:
            if not agreement.is_resolved or not agreement.email:
                unresolved_count += 1
                continue
            email_exists = agreement.email.lower() in existing_emails
            doc_exists = bool(agreement.document_number) and agreement.document_number.strip().lower() in existing_docs
            if email_exists or doc_exists:
                duplicate_count += 1
                continue
            filtered_agreements.append(agreement)

        excluded_count = len(supabase_agreements) - len(filtered_agreements)
        logger.info(f"Found {len(existing)} existing agreements with matching email or document number")
        logger.info(
            f"Excluded {excluded_count} agreements from insertion "
            f"({duplicate_count} duplicates, {unresolved_count} unresolved)"
        )

        try:
            inserted_count, data = self.supabase_service.insert_agreements(
                [a.model_dump() for a in filtered_agreements]
            )
        except Exception as e:
            logger.error(f"Error inserting agreements: {e}")
            return MigrationResult(
                success=False,
                message="Error inserting data",
                statistics=MigrationStatistics(
                    strapi_count=strapi_count,
                    supabase_inserted=0,
                    transformed_count=len(supabase_agreements),
                    excluded_count=excluded_count,
                    difference=strapi_count,
                    unresolved_count=unresolved_count,
                    duplicate_count=duplicate_count,
                ),
                error=str(e) or e.__class__.__name__,
            )

        return MigrationResult(
            success=True,
            message="Data inserted successfully",
            statistics=MigrationStatistics(
                strapi_count=strapi_count,
                supabase_inserted=inserted_count,
                transformed_count=len(supabase_agreements),
                excluded_count=excluded_count,
                difference=strapi_count - inserted_count,
                unresolved_count=unresolved_count,
                duplicate_count=duplicate_count,
            ),
            data=data,
        )
