"""
test_agents_unit.py
-------------------
Unit tests for the agent registry (`services.agents`) and dashboard snapshots
(`services.snapshots`).

Goals:
- Cost is estimated per 1M tokens from the model's pricing, with a fallback.
- Usage runs fold into totals and running means; failed runs add no cost.
- Console KPIs and the search/sort view match the registry contents.
- A snapshot freezes the dashboard numbers for the given timeframe.
"""

from datetime import datetime

import pytest

from neondash.models import Agent
from neondash.services.agents import (
    agent_summary,
    estimate_cost,
    filter_and_sort,
    record_usage,
)
from neondash.services.snapshots import capture, default_name

NOW = datetime(2026, 10, 19, 15, 0)


def _agent(**fields):
    defaults = dict(name="Agent", description="", model="gpt-4o", status="offline",
                    total_tokens=0, cost=0.0, runs=0, avg_latency=0.0, success_rate=100.0)
    defaults.update(fields)
    return Agent(**defaults)


def test_estimate_cost_uses_model_pricing():
    """gpt-4o: 2.50 in + 10.00 out per 1M tokens."""
    assert estimate_cost("gpt-4o", 1_000_000, 1_000_000) == pytest.approx(12.5)
    assert estimate_cost("gpt-4o-mini", 1000, 500) == pytest.approx(0.00045)


def test_estimate_cost_falls_back_for_unknown_model():
    assert estimate_cost("home-grown-llm", 2_000_000, 1_000_000) == pytest.approx(2.5)


def test_record_usage_accumulates_totals():
    agent = _agent()
    record_usage(agent, 1000, 500, latency_ms=1000, now=NOW)

    assert agent.total_tokens == 1500
    assert agent.cost == pytest.approx(0.0075)
    assert agent.runs == 1
    assert agent.avg_latency == 1000
    assert agent.success_rate == 100.0
    assert agent.last_used == NOW.isoformat()


def test_failed_run_adds_no_cost_but_lowers_success_rate():
    agent = _agent()
    record_usage(agent, 1000, 500, latency_ms=1000, now=NOW)
    record_usage(agent, 800, 0, latency_ms=3000, successful=False, now=NOW)

    assert agent.total_tokens == 1500
    assert agent.cost == pytest.approx(0.0075)
    assert agent.runs == 2
    assert agent.avg_latency == 2000
    assert agent.success_rate == 50.0


def test_agent_summary():
    agents = [
        _agent(status="online", total_tokens=100, cost=0.1234567, success_rate=100.0),
        _agent(status="offline", total_tokens=200, cost=0.2, success_rate=50.0),
    ]
    summary = agent_summary(agents)
    assert summary["total_agents"] == 2
    assert summary["active_agents"] == 1
    assert summary["total_tokens"] == 300
    assert summary["total_cost"] == pytest.approx(0.323457)
    assert summary["avg_success_rate"] == 75.0


def test_agent_summary_empty_registry():
    assert agent_summary([]) == {
        "total_agents": 0, "active_agents": 0, "total_tokens": 0,
        "total_cost": 0, "avg_success_rate": 0.0,
    }


def test_filter_and_sort():
    agents = [
        _agent(name="Beta", model="gpt-4o", total_tokens=10),
        _agent(name="alpha", model="gemini-1.5-flash", total_tokens=30),
        _agent(name="Gamma", description="Handles churn calls", total_tokens=20),
    ]
    assert [a.name for a in filter_and_sort(agents)] == ["alpha", "Gamma", "Beta"]
    assert [a.name for a in filter_and_sort(agents, sort="name", direction="asc")] == ["alpha", "Beta", "Gamma"]
    assert [a.name for a in filter_and_sort(agents, search="GEMINI")] == ["alpha"]
    assert [a.name for a in filter_and_sort(agents, search="churn")] == ["Gamma"]


def test_filter_and_sort_rejects_unknown_field():
    with pytest.raises(ValueError):
        filter_and_sort([], sort="system_prompt")


# -----------------------------------------------------------------------------
# Snapshots
# -----------------------------------------------------------------------------

def test_capture_freezes_dashboard_numbers(make_account):
    accounts = [
        make_account(status="Active", mrr=100, health_score=80),
        make_account(status="Risk", mrr=50, health_score=40),
        make_account(status="Churned", mrr=70, health_score=20),
        make_account(status="Active", mrr=999, health_score=0, is_test=True),
    ]
    data = capture(accounts, "7d", now=NOW)
    assert data["global_score"] == 47
    assert data["active_users"] == 1
    assert data["mrr"] == 150.0
    assert data["churn"] == pytest.approx(33.33)
    assert data["timeframe"] == "7d"
    assert data["timestamp"] == NOW.isoformat()


def test_capture_rejects_unknown_timeframe():
    with pytest.raises(ValueError):
        capture([], "90d", now=NOW)


def test_default_snapshot_name():
    assert default_name(0) == "Snapshot #1"
    assert default_name(4) == "Snapshot #5"
