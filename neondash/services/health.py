# neondash/services/health.py
"""
Health score utilities.

Four sub-metrics (0..100) → weighted average (0..100, integer).
- engagement: product usage depth
- support:    high is good (few/quickly solved tickets)
- finance:    high is good (paying on time)
- risk:       high is safe, low is risky

The weight vector is user-tunable and is NOT required to sum to 100; the
score divides by the actual weight sum. A zero weight sum yields 0.
"""

import math
from typing import Dict, Iterable, List, Mapping, Optional

from .prng import seeded_rng

FACTORS = ("engagement", "support", "finance", "risk")

METRIC_JITTER: float = 10.0


def round_half_up(x: float) -> int:
    """Round to the nearest integer, .5 going up (dashboard rounding)."""
    return int(math.floor(x + 0.5))


def _clamp100(x: float) -> float:
    return 0.0 if x < 0.0 else 100.0 if x > 100.0 else x


def compute_score(metrics: Mapping[str, float], weights: Mapping[str, float]) -> int:
    total_weight = sum(weights.get(name, 0.0) for name in FACTORS)
    if total_weight == 0:
        return 0
    weighted_sum = sum(metrics.get(name, 0.0) * weights.get(name, 0.0) for name in FACTORS)
    return round_half_up(weighted_sum / total_weight)


def ensure_metrics(metrics: Optional[Mapping[str, float]], base_score: float, seed_id: str) -> Dict[str, float]:
    """
    Return `metrics` as a plain dict, or synthesize one when absent.

    Synthesized sub-scores are `base_score` ± METRIC_JITTER, clamped to 0..100,
    drawn from a PRNG seeded by the account id and its prior score so the same
    account always gets the same baseline.
    """
    if metrics:
        return {name: float(metrics.get(name, 0.0)) for name in FACTORS}
    rng = seeded_rng(seed_id, base_score)
    return {
        name: round(_clamp100(base_score + rng.uniform(-METRIC_JITTER, METRIC_JITTER)), 1)
        for name in FACTORS
    }


def recalculate_all(accounts: Iterable[Mapping], weights: Mapping[str, float]) -> List[dict]:
    """
    Recompute `health_score` for every account against `weights`.

    Returns new dicts (input is left untouched). Accounts without metrics get a
    synthesized baseline around their previous score first.
    """
    updated = []
    for account in accounts:
        metrics = ensure_metrics(account.get("metrics"), account.get("health_score") or 0, account["id"])
        updated.append({**account, "metrics": metrics, "health_score": compute_score(metrics, weights)})
    return updated


def global_score(accounts: Iterable[Mapping]) -> int:
    """Average health over non-test accounts; 0 for an empty population."""
    scores = [a.get("health_score") or 0 for a in accounts if not a.get("is_test")]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))
