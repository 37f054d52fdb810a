# neondash/services/analytics.py
"""
Portfolio analytics for the dashboard pages.

Test accounts (`is_test`) never count toward revenue or health aggregates.
Churned accounts count toward churn but not toward MRR.
"""

import calendar
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional

from .dates import last_active_at, parse_timestamp
from .health import global_score, round_half_up

RETENTION_PERIODS = ("week", "month", "year")

_EPOCH = datetime(1970, 1, 1)


def _real(accounts: Iterable[Mapping]) -> List[Mapping]:
    return [a for a in accounts if not a.get("is_test")]


def dashboard_metrics(accounts: Iterable[Mapping]) -> dict:
    """Headline KPIs: users, MRR, churn rate and the population health score."""
    valid = _real(accounts)
    churned = sum(1 for a in valid if a.get("status") == "Churned")
    return {
        "total_users": len(valid),
        "total_mrr": round(sum(a.get("mrr") or 0.0 for a in valid if a.get("status") != "Churned"), 2),
        "churn_rate": round(churned / len(valid) * 100, 2) if valid else 0.0,
        "global_score": global_score(valid),
    }


def base_kpis(accounts: Iterable[Mapping]) -> dict:
    accounts = list(accounts)
    live = [a for a in accounts if a.get("status") != "Churned"]
    paying = [a for a in live if not a.get("is_test")]
    engagement = sum((a.get("metrics") or {}).get("engagement", 0.0) for a in paying)
    mrr = sum(a.get("mrr") or 0.0 for a in paying)
    return {
        "total": len(live),
        "active": sum(1 for a in accounts if a.get("status") == "Active"),
        "risk": sum(1 for a in accounts if a.get("status") == "Risk"),
        "avg_engagement": round_half_up(engagement / (len(paying) or 1)),
        "arpu": round(mrr / len(paying), 2) if paying else 0.0,
    }


def _bucket_ends(period: str, now: datetime) -> List[datetime]:
    """Bucket end instants, oldest first."""
    end_of_day = now.replace(hour=23, minute=59, second=59, microsecond=999999)
    if period == "week":
        return [end_of_day - timedelta(days=i) for i in range(6, -1, -1)]
    if period == "month":
        return [end_of_day - timedelta(days=i) for i in range(29, -1, -1)]
    if period == "year":
        ends = []
        for i in range(11, -1, -1):
            month_index = now.year * 12 + (now.month - 1) - i
            year, month = divmod(month_index, 12)
            last_day = calendar.monthrange(year, month + 1)[1]
            ends.append(datetime(year, month + 1, last_day, 23, 59, 59, 999999))
        return ends
    raise ValueError(f"Unknown retention period: {period!r}")


def _label(period: str, point: datetime) -> str:
    if period == "year":
        return point.strftime("%Y-%m")
    return point.strftime("%d/%m")


def retention_evolution(accounts: Iterable[Mapping], period: str = "month",
                        now: Optional[datetime] = None) -> List[dict]:
    """
    Active vs churned account counts at the end of each bucket.

    An account counts once it has joined. A churned account counts as churned
    from its last access onward (never earlier than its join date) and as
    active before that.
    """
    now = now or datetime.utcnow()
    valid = _real(accounts)
    points = []
    for point in _bucket_ends(period, now):
        active = churn = 0
        for account in valid:
            joined = parse_timestamp(account.get("joined_at")) or _EPOCH
            if joined > point:
                continue
            if account.get("status") == "Churned":
                churned_at = last_active_at(account.get("last_active"), now) or joined
                if churned_at < joined:
                    churned_at = joined
                if churned_at <= point:
                    churn += 1
                    continue
            active += 1
        points.append({"name": _label(period, point), "active": active, "churn": churn})
    return points
