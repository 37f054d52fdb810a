# neondash/services/dates.py
"""
Timestamp parsing for account fields that mix ISO strings with sentinels.

`last_active` holds either an ISO-8601 timestamp or one of:
- "Agora": active right now
- "Nunca": never accessed
Timezone-aware values are normalized to naive UTC, like every datetime we store.
"""

from datetime import datetime, timezone
from typing import Optional, Union

NOW_SENTINEL = "Agora"
NEVER_SENTINEL = "Nunca"


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO timestamp (or `YYYY-MM-DD`); None when missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if not s or s in (NOW_SENTINEL, NEVER_SENTINEL):
            return None
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def last_active_at(value: Union[str, datetime, None], now: datetime) -> Optional[datetime]:
    """Resolve `last_active` to a datetime ("Agora" -> now, "Nunca" -> None)."""
    if value == NOW_SENTINEL:
        return now
    return parse_timestamp(value)
