import logging
from typing import Dict, Iterable, List, Tuple

from supabase import Client

from akademy.modules.migration.exceptions import LookupPreloadError, SeasonResolutionError
from akademy.modules.migration.normalization import normalize_text
from akademy.modules.migration.utils import split_into_batches

logger = logging.getLogger(__name__)


class SupabaseService:
    """Store access for the migration: lookup preloads, season resolution and the bulk insert."""

    def __init__(self, supabase: Client, batch_size: int = 50):
        self.supabase = supabase
        self.batch_size = batch_size

    def preload_lookup_table(self, table_name: str, name_column: str = "name") -> Dict[str, str]:
        """Map normalized name -> id for every row of `table_name`. Rows without a name are skipped."""
        try:
            result = self.supabase.table(table_name)\
                .select(f"id, {name_column}")\
                .order(name_column)\
                .execute()
        except Exception as e:
            logger.error(f"Error pre-loading {table_name}: {e}")
            raise LookupPreloadError(f"Error pre-loading {table_name}: {e}") from e

        lookup: Dict[str, str] = {}
        for item in result.data or []:
            key = normalize_text(item.get(name_column))
            if not key:
                logger.warning(
                    f"Item in {table_name} table with ID {item.get('id')} has a null or missing "
                    f"'{name_column}'. Skipping."
                )
                continue
            if key in lookup:
                logger.warning(f"Duplicate normalized name '{key}' in {table_name}; keeping {lookup[key]}")
                continue
            lookup[key] = item["id"]

        logger.info(f"Finished pre-loading {table_name}. {len(lookup)} items mapped.")
        return lookup

    def get_active_season_ids(
        self, headquarter_ids: Iterable[str], active_status: str = "active"
    ) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Resolve the active season of each headquarter with one query per batch of ids.

        Returns (season_by_headquarter, failure_reason_by_headquarter). A
        headquarter with no active season, or more than one, lands in the
        failures map. Store errors raise SeasonResolutionError.
        """
        ids = sorted({hq for hq in headquarter_ids if hq})
        seasons_by_hq: Dict[str, List[str]] = {hq: [] for hq in ids}

        for batch in split_into_batches(ids, self.batch_size):
            try:
                result = self.supabase.table("seasons")\
                    .select("id, headquarter_id")\
                    .in_("headquarter_id", batch)\
                    .eq("status", active_status)\
                    .execute()
            except Exception as e:
                logger.error(f"Error getting season ids by headquarter id: {e}")
                raise SeasonResolutionError(f"Error getting season ids by headquarter id: {e}") from e
            for row in result.data or []:
                seasons_by_hq.setdefault(row["headquarter_id"], []).append(row["id"])

        resolved: Dict[str, str] = {}
        failures: Dict[str, str] = {}
        for hq, season_ids in seasons_by_hq.items():
            if len(season_ids) == 1:
                resolved[hq] = season_ids[0]
            elif not season_ids:
                failures[hq] = f"No {active_status} season found for headquarter {hq}"
            else:
                failures[hq] = f"{len(season_ids)} {active_status} seasons found for headquarter {hq}"
        return resolved, failures

    def insert_agreements(self, agreements: List[dict]) -> Tuple[int, List[dict]]:
        """Insert all rows in one call. Returns (exact affected count, inserted rows). Errors propagate."""
        if not agreements:
            logger.info("No records to insert into Supabase.")
            return 0, []

        logger.info(f"Inserting {len(agreements)} records into Supabase table 'agreements'...")
        result = self.supabase.table("agreements")\
            .insert(agreements, count="exact")\
            .execute()
        data = result.data or []
        count = result.count if result.count is not None else len(data)
        logger.info(f"Supabase insert successful. Response count: {count}.")
        return count, data
