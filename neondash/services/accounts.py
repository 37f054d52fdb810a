# neondash/services/accounts.py
"""
Account record helpers shared by the API and the seeding script.

- `account_to_dict`: ORM row -> plain dict the scoring core understands, with
  metrics ensured and the journey merged against the current template.
- `new_account`: fills in id, metrics, journey and health score for a create.
- `apply_changes`: partial update + audit events for what changed.
- `record_events`: writes events to the account history and global stream.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from ..models import Account, StreamEvent
from .dates import NEVER_SENTINEL, NOW_SENTINEL, parse_timestamp
from .events import HISTORY_LIMIT, diff_events, make_event, push_history
from .health import compute_score, ensure_metrics
from .journey import JOURNEY_TEMPLATE, merge_journey

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_SCORE: int = 100

UPDATABLE_FIELDS = (
    "name", "company", "email", "plan", "status", "mrr", "metrics",
    "last_active", "joined_at", "is_test", "churn_reason",
)


def account_to_dict(row: Account) -> dict:
    base = row.health_score if row.health_score is not None else 50
    return {
        "id": row.id,
        "name": row.name,
        "company": row.company,
        "email": row.email,
        "plan": row.plan,
        "status": row.status,
        "mrr": float(row.mrr or 0.0),
        "health_score": int(base),
        "metrics": ensure_metrics(row.metrics, base, row.id),
        "journey": merge_journey(JOURNEY_TEMPLATE, row.journey, row.id, row.status),
        "history": list(row.history or []),
        "last_active": row.last_active or NEVER_SENTINEL,
        "joined_at": row.joined_at,
        "is_test": bool(row.is_test),
        "churn_reason": row.churn_reason,
        "created_at": row.created_at,
    }


def new_account(data: Mapping, weights: Mapping[str, float],
                now: Optional[datetime] = None) -> Tuple[dict, List[dict]]:
    """
    Complete a create payload into a full account dict (not yet persisted).

    Returns the account (empty history) and its creation event.
    """
    now = now or datetime.utcnow()
    account_id = str(uuid.uuid4())
    baseline = data["health_score"] if data.get("health_score") is not None else DEFAULT_BASELINE_SCORE
    metrics = ensure_metrics(data.get("metrics"), baseline, account_id)
    status = data.get("status") or "New"
    account = {
        "id": account_id,
        "name": data["name"],
        "company": data.get("company") or "",
        "email": data.get("email") or "",
        "plan": data.get("plan") or "Starter",
        "status": status,
        "mrr": float(data.get("mrr") or 0.0),
        "metrics": metrics,
        "health_score": compute_score(metrics, weights),
        "journey": merge_journey(JOURNEY_TEMPLATE, None, account_id, status),
        "last_active": data.get("last_active") or NOW_SENTINEL,
        "joined_at": parse_timestamp(data.get("joined_at")) or now,
        "is_test": bool(data.get("is_test")),
        "churn_reason": data.get("churn_reason"),
        "created_at": now,
        "history": [],
    }
    created = make_event("success", "Account created", f"{account['name']} ({account['plan']})", account_id, now)
    return account, [created]


def apply_changes(current: Mapping, changes: Mapping, weights: Mapping[str, float],
                  now: Optional[datetime] = None) -> Tuple[dict, List[dict]]:
    """
    Merge a partial update into `current`.

    A metrics change rescores the account with `weights`. Returns the new
    account dict and the audit events the change produced.
    """
    updated = dict(current)
    for key in UPDATABLE_FIELDS:
        if key in changes:
            updated[key] = changes[key]

    if "joined_at" in changes:
        updated["joined_at"] = parse_timestamp(changes["joined_at"]) or current["joined_at"]
    if "metrics" in changes and changes["metrics"] is not None:
        updated["metrics"] = ensure_metrics({**current["metrics"], **changes["metrics"]}, 0, current["id"])
        updated["health_score"] = compute_score(updated["metrics"], weights)

    return updated, diff_events(current, updated, now)


def write_account(row: Account, account: Mapping) -> None:
    """Copy a full account dict onto its ORM row."""
    for key in UPDATABLE_FIELDS + ("health_score", "journey", "history"):
        setattr(row, key, account[key])


def record_events(db: Session, row: Account, events: List[dict]) -> None:
    """Prepend `events` to the row's history and publish them to the stream."""
    history = list(row.history or [])
    for event in events:
        history = push_history(history, event)
        db.add(StreamEvent(
            id=event["id"],
            account_id=event.get("account_id"),
            type=event["type"],
            title=event["title"],
            description=event["description"],
            timestamp=datetime.fromisoformat(event["timestamp"]),
        ))
    row.history = history
    if events:
        prune_stream(db)
        logger.debug("Recorded %d events for account %s", len(events), row.id)


def prune_stream(db: Session, limit: int = HISTORY_LIMIT) -> None:
    """Keep only the newest `limit` stream events."""
    db.flush()
    stale = (
        db.query(StreamEvent.id)
        .order_by(StreamEvent.timestamp.desc())
        .offset(limit)
        .all()
    )
    if stale:
        db.query(StreamEvent).filter(StreamEvent.id.in_([s.id for s in stale])).delete(synchronize_session=False)
