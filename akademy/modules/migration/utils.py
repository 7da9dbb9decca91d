import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_into_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split a sequence into successive chunks of at most batch_size items."""
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as an aware UTC datetime. Returns None when unparseable."""
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso(value: datetime) -> str:
    """Strict ISO-8601 with millisecond precision and a Z suffix, the format Strapi emits."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_iso_date(raw: Optional[str], now: datetime) -> str:
    """Normalize a source timestamp; unparseable input falls back to `now` with a warning."""
    parsed = parse_timestamp(raw)
    if parsed is None:
        logger.warning(f"Failed to parse date: {raw!r}; using run time")
        return format_iso(now)
    return format_iso(parsed)
