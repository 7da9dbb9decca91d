"""
Run Strapi Migration Script
Runs one incremental Strapi -> Supabase agreements migration with the service-role client.
Can be run manually or as part of a nightly job:

    python -m akademy.scripts.run_migration
"""

import json
import logging
import sys

from akademy.database.supabase_client import SupabaseClient
from akademy.modules.migration.exceptions import MigrationError
from akademy.modules.migration.service import MigrationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> int:
    try:
        supabase = SupabaseClient.get_service_client()
        service = MigrationService.from_settings(supabase)
    except MigrationError as e:
        logger.error(f"Migration aborted: {e}")
        return 1

    try:
        result = service.run()
    except MigrationError as e:
        logger.error(f"Migration aborted: {e}")
        return 1
    finally:
        service.close()

    print(json.dumps(result.to_response(), indent=2, default=str))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
