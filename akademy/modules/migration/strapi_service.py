import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from akademy.modules.migration.exceptions import StrapiFetchError
from akademy.modules.migration.schemas import StrapiAgreement

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


def flatten_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Strapi v4 wraps fields in an `attributes` envelope; v5 returns them flat. Keep the top-level id."""
    attributes = item.get("attributes") if isinstance(item, dict) else None
    if isinstance(attributes, dict):
        return {**attributes, "id": item.get("id")}
    return dict(item)


class StrapiService:
    """Paginated reader for a Strapi collection. Read-only."""

    def __init__(
        self,
        api_url: str,
        api_token: str,
        http_client: Optional[httpx.Client] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.page_size = page_size
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def _build_url(self, endpoint: str) -> str:
        clean_endpoint = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{self.api_url}{clean_endpoint}"

    def _build_params(self, page: int, last_migrated_at: Optional[str]) -> List[Tuple[str, Any]]:
        params: List[Tuple[str, Any]] = [
            ("pagination[page]", page),
            ("pagination[pageSize]", self.page_size),
            ("populate", "*"),
        ]
        if last_migrated_at:
            params.append(("filters[$or][0][createdAt][$gt]", last_migrated_at))
            params.append(("filters[$or][1][updatedAt][$gt]", last_migrated_at))
        return params

    def _get_page(self, url: str, page: int, last_migrated_at: Optional[str]) -> Dict[str, Any]:
        try:
            response = self.http_client.get(
                url,
                params=self._build_params(page, last_migrated_at),
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Error fetching page {page} from Strapi: {e}")
            raise StrapiFetchError(f"Strapi API request failed (Page {page}): {e}") from e

        if not response.is_success:
            raise StrapiFetchError(
                f"Strapi API request failed (Page {page}): "
                f"{response.status_code} {response.reason_phrase} - {response.text}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise StrapiFetchError(f"Strapi API returned invalid JSON (Page {page})") from e

    def fetch_all_agreements(
        self,
        endpoint: str = "/api/acuerdo-akademias",
        last_migrated_at: Optional[str] = None,
    ) -> List[StrapiAgreement]:
        """Fetch every record created or updated after `last_migrated_at` (all records when None).

        Pages are requested one at a time. Any failed page aborts the whole
        fetch; nothing fetched so far is returned.
        """
        url = self._build_url(endpoint)
        if last_migrated_at:
            logger.info(f"Filtering records created or updated after: {last_migrated_at}")

        agreements: List[StrapiAgreement] = []
        page = 1
        has_more_pages = True
        while has_more_pages:
            body = self._get_page(url, page, last_migrated_at)
            items = body.get("data") or []
            agreements.extend(StrapiAgreement.model_validate(flatten_item(item)) for item in items)
            logger.debug(f"Fetched Strapi page {page} ({len(items)} records)")

            pagination = (body.get("meta") or {}).get("pagination")
            if pagination:
                has_more_pages = pagination.get("page", page) < pagination.get("pageCount", 0)
            else:
                has_more_pages = len(items) == self.page_size
            page += 1

        logger.info(f"Finished fetching from Strapi. Total records: {len(agreements)}")
        return agreements

    def close(self) -> None:
        self.http_client.close()
