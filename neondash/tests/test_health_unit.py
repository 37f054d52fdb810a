"""
test_health_unit.py
-------------------
Unit tests for the health scoring utilities in `services.health` and the weight
configuration in `services.weights`.

Goals:
- The score is the weighted average of the four sub-metrics, rounded half-up.
- A zero weight sum yields 0 instead of a division error.
- Missing metrics are synthesized deterministically around the prior score.
- A weight change always comes back paired with a full rescore.

These tests focus on pure functions (no I/O), so failures indicate logic issues,
not infrastructure problems.
"""

import pytest

from neondash.services.health import (
    compute_score,
    ensure_metrics,
    global_score,
    recalculate_all,
    round_half_up,
)
from neondash.services.weights import (
    DEFAULT_WEIGHTS,
    WeightConfig,
    apply_weight_change,
    reset_to_default,
    set_weight,
    toggle_editing,
)

ZERO_WEIGHTS = {"engagement": 0, "support": 0, "finance": 0, "risk": 0}


def test_compute_score_default_weights():
    """(80*40 + 60*20 + 90*30 + 50*10) / 100 = 76."""
    metrics = {"engagement": 80, "support": 60, "finance": 90, "risk": 50}
    assert compute_score(metrics, DEFAULT_WEIGHTS) == 76


@pytest.mark.parametrize("metrics, weights", [
    ({"engagement": 88, "support": 95, "finance": 100, "risk": 72}, {"engagement": 40, "support": 20, "finance": 30, "risk": 10}),
    ({"engagement": 10, "support": 20, "finance": 30, "risk": 40}, {"engagement": 5, "support": 5, "finance": 5, "risk": 5}),
    ({"engagement": 33.3, "support": 66.6, "finance": 99.9, "risk": 0}, {"engagement": 100, "support": 0, "finance": 35, "risk": 70}),
    ({"engagement": 0, "support": 100, "finance": 0, "risk": 100}, {"engagement": 15, "support": 45, "finance": 0, "risk": 5}),
])
def test_compute_score_matches_weighted_average(metrics, weights):
    """Weights need not sum to 100: the score divides by the actual sum."""
    total = sum(weights.values())
    expected = round_half_up(sum(metrics[k] * weights[k] for k in weights) / total)
    assert compute_score(metrics, weights) == expected


def test_compute_score_rounds_half_up():
    """36.5 rounds to 37 (Python's round() would give 36)."""
    metrics = {"engagement": 73, "support": 0, "finance": 0, "risk": 0}
    weights = {"engagement": 1, "support": 1, "finance": 0, "risk": 0}
    assert compute_score(metrics, weights) == 37


def test_compute_score_zero_weight_sum_is_zero():
    for metrics in ({"engagement": 100, "support": 100, "finance": 100, "risk": 100},
                    {"engagement": 0, "support": 0, "finance": 0, "risk": 0}):
        assert compute_score(metrics, ZERO_WEIGHTS) == 0


def test_compute_score_is_deterministic():
    metrics = {"engagement": 41, "support": 77, "finance": 12, "risk": 90}
    assert compute_score(metrics, DEFAULT_WEIGHTS) == compute_score(metrics, DEFAULT_WEIGHTS)


def test_ensure_metrics_keeps_existing_values():
    metrics = {"engagement": 10, "support": 20, "finance": 30, "risk": 40}
    assert ensure_metrics(metrics, 90, "acc-1") == {
        "engagement": 10.0, "support": 20.0, "finance": 30.0, "risk": 40.0,
    }


def test_ensure_metrics_synthesizes_stable_jitter():
    """Same account + same prior score -> same metrics, all within ±10 of it."""
    first = ensure_metrics(None, 60, "acc-42")
    again = ensure_metrics(None, 60, "acc-42")
    assert first == again
    assert set(first) == {"engagement", "support", "finance", "risk"}
    assert all(50.0 <= v <= 70.0 for v in first.values())


def test_ensure_metrics_clamps_to_range():
    high = ensure_metrics(None, 100, "acc-top")
    low = ensure_metrics(None, 0, "acc-bottom")
    assert all(0.0 <= v <= 100.0 for v in high.values())
    assert all(0.0 <= v <= 100.0 for v in low.values())


def test_recalculate_all_fills_metrics_and_does_not_mutate(make_account):
    with_metrics = make_account(metrics={"engagement": 100, "support": 0, "finance": 0, "risk": 0})
    without_metrics = make_account(metrics=None, health_score=70)
    accounts = [with_metrics, without_metrics]

    result = recalculate_all(accounts, DEFAULT_WEIGHTS)

    assert result[0]["health_score"] == 40
    assert result[1]["metrics"] is not None
    assert result[1]["health_score"] == compute_score(result[1]["metrics"], DEFAULT_WEIGHTS)
    assert without_metrics["metrics"] is None
    assert with_metrics["health_score"] == 50


def test_recalculate_all_is_idempotent(make_account):
    accounts = [make_account(metrics=None, health_score=s) for s in (10, 55, 99)]
    once = recalculate_all(accounts, DEFAULT_WEIGHTS)
    twice = recalculate_all(once, DEFAULT_WEIGHTS)
    assert once == twice


def test_global_score_excludes_test_accounts(make_account):
    accounts = [
        make_account(health_score=80),
        make_account(health_score=61),
        make_account(health_score=0, is_test=True),
    ]
    assert global_score(accounts) == 71  # (80 + 61) / 2 = 70.5 -> 71
    assert global_score([]) == 0
    assert global_score([make_account(is_test=True)]) == 0


# -----------------------------------------------------------------------------
# Weight configuration
# -----------------------------------------------------------------------------

def test_default_weight_vector():
    assert WeightConfig().weights == {"engagement": 40, "support": 20, "finance": 30, "risk": 10}
    assert WeightConfig().is_editing is False


def test_set_weight_returns_new_config():
    config = WeightConfig()
    updated = set_weight(config, "risk", 55)
    assert updated.weights["risk"] == 55
    assert config.weights["risk"] == 10


def test_set_weight_does_not_clamp():
    """Range checks belong to the caller; the store keeps what it is given."""
    assert set_weight(WeightConfig(), "support", 250).weights["support"] == 250


def test_set_weight_rejects_unknown_factor():
    with pytest.raises(ValueError):
        set_weight(WeightConfig(), "loyalty", 10)


def test_reset_and_toggle_editing():
    config = toggle_editing(set_weight(WeightConfig(), "finance", 0))
    assert config.is_editing is True
    reset = reset_to_default(config)
    assert reset.weights == DEFAULT_WEIGHTS
    assert reset.is_editing is True
    assert toggle_editing(reset).is_editing is False


def test_weight_change_leaves_no_stale_scores(make_account):
    """After any weight change every score matches the new vector."""
    accounts = [
        make_account(metrics={"engagement": e, "support": 100 - e, "finance": 50, "risk": e / 2})
        for e in (0, 25, 80, 100)
    ]
    config = WeightConfig()
    for factor, value in (("engagement", 0), ("risk", 90), ("support", 5)):
        config, accounts = apply_weight_change(set_weight(config, factor, value), accounts)
        for account in accounts:
            assert account["health_score"] == compute_score(account["metrics"], config.weights)

    config, accounts = apply_weight_change(reset_to_default(config), accounts)
    for account in accounts:
        assert account["health_score"] == compute_score(account["metrics"], DEFAULT_WEIGHTS)


def test_zero_weights_zero_every_score(make_account):
    accounts = [make_account(metrics={"engagement": v, "support": v, "finance": v, "risk": v}) for v in (0, 50, 100)]
    config = WeightConfig()
    for factor in ("engagement", "support", "finance", "risk"):
        config = set_weight(config, factor, 0)
    _, rescored = apply_weight_change(config, accounts)
    assert [a["health_score"] for a in rescored] == [0, 0, 0]
