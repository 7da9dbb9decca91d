import logging
from typing import List, Optional, Sequence, Set, Tuple

from supabase import Client

from akademy.modules.migration.exceptions import DuplicateCheckError
from akademy.modules.migration.schemas import ExistingAgreement
from akademy.modules.migration.utils import split_into_batches

logger = logging.getLogger(__name__)


def _lower(value: Optional[str]) -> str:
    return value.strip().lower() if value else ""


def _agreement_key(agreement: ExistingAgreement) -> Tuple[str, str]:
    return _lower(agreement.email), _lower(agreement.document_number)


def _query_values(values: Sequence[str]) -> List[str]:
    """Distinct values plus their lower-cased form, so `in` matches rows stored in either case."""
    seen: Set[str] = set()
    expanded: List[str] = []
    for value in values:
        for candidate in (value.strip(), _lower(value)):
            if candidate and candidate not in seen:
                seen.add(candidate)
                expanded.append(candidate)
    return expanded


class AgreementChecker:
    """Batched existence check of agreements by email or document number (case-insensitive)."""

    def __init__(self, supabase: Client, batch_size: int = 50):
        self.supabase = supabase
        self.batch_size = batch_size

    def _find_existing(self, column: str, values: Sequence[str], label: str) -> List[ExistingAgreement]:
        expanded = _query_values(values)
        if not expanded:
            return []
        batches = split_into_batches(expanded, self.batch_size)
        logger.info(f"Processing {len(expanded)} {label} in {len(batches)} batches")

        found: List[ExistingAgreement] = []
        for i, batch in enumerate(batches, start=1):
            logger.debug(f"Processing {label} batch {i}/{len(batches)} ({len(batch)} values)")
            try:
                result = self.supabase.table("agreements")\
                    .select("email, document_number")\
                    .in_(column, batch)\
                    .execute()
            except Exception as e:
                logger.error(f"Error checking for existing {label} in batch {i}: {e}")
                raise DuplicateCheckError(f"Error checking for existing {label} in batch {i}: {e}") from e
            found.extend(ExistingAgreement(**row) for row in result.data or [])
        return found

    def check_existing_by_email(self, emails: Sequence[Optional[str]]) -> List[ExistingAgreement]:
        return self._find_existing("email", [e for e in emails if e], "emails")

    def check_existing_by_document_number(
        self,
        emails: Sequence[Optional[str]],
        document_numbers: Sequence[Optional[str]],
        existing_by_email: List[ExistingAgreement],
    ) -> List[ExistingAgreement]:
        """Look up only document numbers whose record was not already matched by email."""
        matched_emails = {_lower(a.email) for a in existing_by_email if a.email}
        matched_docs = {_lower(a.document_number) for a in existing_by_email if a.document_number}

        remaining: List[str] = []
        for email, document_number in zip(emails, document_numbers):
            if not document_number:
                continue
            if _lower(email) in matched_emails or _lower(document_number) in matched_docs:
                continue
            remaining.append(document_number)

        if not remaining:
            return []
        return self._find_existing("document_number", remaining, "document numbers")

    def check_existing_agreements_in_batches(
        self,
        emails: Sequence[Optional[str]],
        document_numbers: Sequence[Optional[str]],
    ) -> List[ExistingAgreement]:
        """Existing agreements matching any email or document number, without repeated rows.

        `emails` and `document_numbers` are parallel: index i belongs to one record.
        """
        if len(emails) != len(document_numbers):
            raise ValueError("emails and document_numbers must be parallel sequences")
        if not any(emails) and not any(document_numbers):
            return []

        by_email = self.check_existing_by_email(emails)
        by_document = self.check_existing_by_document_number(emails, document_numbers, by_email)

        combined: List[ExistingAgreement] = []
        seen: Set[Tuple[str, str]] = set()
        for agreement in by_email + by_document:
            key = _agreement_key(agreement)
            if key in seen:
                continue
            seen.add(key)
            combined.append(agreement)

        logger.info(f"Found {len(combined)} total existing agreements")
        return combined
