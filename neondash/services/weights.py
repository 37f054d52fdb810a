# neondash/services/weights.py
"""
Weight configuration for the health score.

A weight change is never applied on its own: `apply_weight_change` pairs the
new vector with a full recompute of every account, and `save_weight_change`
writes both in a single commit. Readers therefore never see new weights next
to scores computed with the old ones.

Values are stored as given; clamping to 0..100 is the caller's job.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Tuple

from sqlalchemy.orm import Session

from ..models import Account, HealthWeights
from .accounts import account_to_dict
from .health import FACTORS, recalculate_all

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "engagement": 40.0,
    "support":    20.0,
    "finance":    30.0,
    "risk":       10.0,
}

WEIGHTS_ROW_ID = 1


@dataclass(frozen=True)
class WeightConfig:
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    is_editing: bool = False


def set_weight(config: WeightConfig, factor: str, value: float) -> WeightConfig:
    if factor not in FACTORS:
        raise ValueError(f"Unknown health factor: {factor!r}")
    return replace(config, weights={**config.weights, factor: float(value)})


def reset_to_default(config: WeightConfig) -> WeightConfig:
    return replace(config, weights=dict(DEFAULT_WEIGHTS))


def toggle_editing(config: WeightConfig) -> WeightConfig:
    return replace(config, is_editing=not config.is_editing)


def apply_weight_change(config: WeightConfig, accounts: List[Mapping]) -> Tuple[WeightConfig, List[dict]]:
    """Return the config together with every account rescored against it."""
    return config, recalculate_all(accounts, config.weights)


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

def _get_or_create_row(db: Session) -> HealthWeights:
    row = db.get(HealthWeights, WEIGHTS_ROW_ID)
    if row is None:
        row = HealthWeights(id=WEIGHTS_ROW_ID, is_editing=False, **DEFAULT_WEIGHTS)
        db.add(row)
        db.flush()
    return row


def load_weight_config(db: Session) -> WeightConfig:
    """Read the persisted weight vector, creating the default row if missing."""
    row = _get_or_create_row(db)
    return WeightConfig(
        weights={name: float(getattr(row, name)) for name in FACTORS},
        is_editing=bool(row.is_editing),
    )


def save_weight_change(db: Session, config: WeightConfig) -> int:
    """
    Persist `config` and rescore every stored account in one transaction.

    Returns:
        int: number of accounts recomputed.
    """
    rows = db.query(Account).all()
    _, rescored = apply_weight_change(config, [account_to_dict(r) for r in rows])

    weights_row = _get_or_create_row(db)
    for name in FACTORS:
        setattr(weights_row, name, config.weights[name])
    weights_row.is_editing = config.is_editing

    by_id = {a["id"]: a for a in rescored}
    for row in rows:
        fresh = by_id[row.id]
        row.metrics = fresh["metrics"]
        row.health_score = fresh["health_score"]

    db.commit()
    logger.info("Applied weights %s; recomputed %d accounts", config.weights, len(rows))
    return len(rows)


def save_editing_flag(db: Session, config: WeightConfig) -> None:
    """Persist only `is_editing`; scores are untouched."""
    _get_or_create_row(db).is_editing = config.is_editing
    db.commit()
    logger.debug("Weight editing %s", "enabled" if config.is_editing else "disabled")
