# neondash/services/snapshots.py
"""
Snapshots: named captures of the headline dashboard numbers.

A snapshot freezes what the dashboard shows at capture time so it can be
compared later; restoring one returns the stored capture, never a recompute.
"""

from datetime import datetime
from typing import Iterable, Mapping, Optional

from .analytics import dashboard_metrics

TIMEFRAMES = ("1h", "24h", "7d", "30d")
DEFAULT_TIMEFRAME = "24h"


def capture(accounts: Iterable[Mapping], timeframe: str = DEFAULT_TIMEFRAME,
            now: Optional[datetime] = None) -> dict:
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Unknown timeframe: {timeframe!r}")
    accounts = list(accounts)
    metrics = dashboard_metrics(accounts)
    return {
        "global_score": metrics["global_score"],
        "active_users": sum(1 for a in accounts if a.get("status") == "Active" and not a.get("is_test")),
        "mrr": metrics["total_mrr"],
        "churn": metrics["churn_rate"],
        "timeframe": timeframe,
        "timestamp": (now or datetime.utcnow()).isoformat(),
    }


def default_name(existing_count: int) -> str:
    return f"Snapshot #{existing_count + 1}"
