"""
test_analytics_unit.py
----------------------
Unit tests for portfolio analytics (`services.analytics`) and accelerator
helpers (`services.accelerator`).
"""

from datetime import datetime, timedelta

import pytest

from neondash.models import Mission
from neondash.services.accelerator import (
    activate_mission,
    base_health,
    growth_speed,
    mission_progress,
)
from neondash.services.analytics import base_kpis, dashboard_metrics, retention_evolution

NOW = datetime(2026, 10, 19, 15, 0)


def test_dashboard_metrics_ignore_test_accounts(make_account):
    accounts = [
        make_account(status="Active", mrr=100, health_score=80),
        make_account(status="Risk", mrr=50, health_score=40),
        make_account(status="Churned", mrr=70, health_score=20),
        make_account(status="Active", mrr=999, health_score=0, is_test=True),
    ]
    metrics = dashboard_metrics(accounts)
    assert metrics["total_users"] == 3
    assert metrics["total_mrr"] == 150.0
    assert metrics["churn_rate"] == pytest.approx(33.33)
    assert metrics["global_score"] == 47  # (80 + 40 + 20) / 3 = 46.67


def test_dashboard_metrics_empty_population():
    assert dashboard_metrics([]) == {"total_users": 0, "total_mrr": 0, "churn_rate": 0.0, "global_score": 0}


def test_base_kpis(make_account):
    accounts = [
        make_account(status="Active", mrr=200, metrics={"engagement": 90}),
        make_account(status="Risk", mrr=100, metrics={"engagement": 30}),
        make_account(status="Churned", mrr=500, metrics={"engagement": 5}),
        make_account(status="Active", mrr=1000, is_test=True, metrics={"engagement": 0}),
    ]
    kpis = base_kpis(accounts)
    assert kpis == {"total": 3, "active": 2, "risk": 1, "avg_engagement": 60, "arpu": 150.0}


def test_retention_evolution_counts_churn_from_last_access(make_account):
    accounts = [
        make_account(status="Active", joined_at=NOW - timedelta(days=60)),
        make_account(status="New", joined_at=NOW - timedelta(days=2)),
        make_account(status="Churned", joined_at=NOW - timedelta(days=90),
                     last_active=(NOW - timedelta(days=10)).isoformat()),
        make_account(status="Active", joined_at=NOW - timedelta(days=90), is_test=True),
    ]
    points = retention_evolution(accounts, "month", now=NOW)

    assert len(points) == 30
    oldest, latest = points[0], points[-1]
    assert oldest == {"name": (NOW - timedelta(days=29)).strftime("%d/%m"), "active": 2, "churn": 0}
    assert latest == {"name": NOW.strftime("%d/%m"), "active": 2, "churn": 1}


def test_retention_churn_date_never_precedes_join(make_account):
    """A churned account that never accessed counts as churned from its join date."""
    accounts = [make_account(status="Churned", joined_at=NOW - timedelta(days=3), last_active="Nunca")]
    points = retention_evolution(accounts, "week", now=NOW)
    assert len(points) == 7
    assert [p["churn"] for p in points] == [0, 0, 0, 1, 1, 1, 1]
    assert all(p["active"] == 0 for p in points)


def test_retention_year_uses_month_ends(make_account):
    points = retention_evolution([make_account(joined_at=datetime(2026, 3, 15))], "year", now=NOW)
    assert len(points) == 12
    assert points[0]["name"] == "2025-11"
    assert points[-1]["name"] == "2026-10"
    assert [p["active"] for p in points[:4]] == [0, 0, 0, 0]
    assert points[4] == {"name": "2026-03", "active": 1, "churn": 0}


def test_retention_rejects_unknown_period():
    with pytest.raises(ValueError):
        retention_evolution([], "decade", now=NOW)


# -----------------------------------------------------------------------------
# Accelerator
# -----------------------------------------------------------------------------

def test_base_health_and_growth_speed(make_account):
    accounts = [
        make_account(status="Active", joined_at=NOW - timedelta(days=2)),
        make_account(status="Risk", joined_at=NOW - timedelta(days=30)),
        make_account(status="Ghost", joined_at=NOW - timedelta(days=6)),
        make_account(status="New", joined_at=NOW - timedelta(days=1)),
        make_account(status="Churned", joined_at=NOW - timedelta(days=1)),
    ]
    assert base_health(accounts) == 50.0
    assert growth_speed(accounts, now=NOW) == 3
    assert base_health([]) == 0.0


def test_mission_progress_is_capped():
    assert mission_progress(200, 50) == 25.0
    assert mission_progress(200, 500) == 100.0


def test_activate_mission_pauses_previous():
    started = datetime(2026, 1, 1)
    missions = [
        Mission(id="m1", title="One", target=10, status="active", start_date=started),
        Mission(id="m2", title="Two", target=20, status="pending"),
    ]
    activate_mission(missions, "m2", now=NOW)
    assert [m.status for m in missions] == ["paused", "active"]
    assert missions[1].start_date == NOW

    activate_mission(missions, "m1", now=NOW + timedelta(days=1))
    assert missions[0].start_date == started
    assert [m.status for m in missions] == ["active", "paused"]


def test_activate_unknown_mission_raises():
    with pytest.raises(ValueError):
        activate_mission([], "missing")
