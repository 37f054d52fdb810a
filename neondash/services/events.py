# neondash/services/events.py
"""
Audit events for account changes.

Every partial update is diffed (status, plan, last access). Each detected
change becomes an event that is prepended to the account's own history and
also published to the global stream. Both are capped at HISTORY_LIMIT.
"""

import os
import uuid
from datetime import datetime
from typing import List, Mapping, Optional

HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "50"))

# status -> event type shown in the stream
STATUS_EVENT_TYPES = {
    "Active":  "success",
    "New":     "info",
    "Risk":    "warning",
    "Ghost":   "warning",
    "Churned": "error",
}


def make_event(type_: str, title: str, description: str = "",
               account_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "type": type_,
        "title": title,
        "description": description,
        "timestamp": (now or datetime.utcnow()).isoformat(),
        "account_id": account_id,
    }


def push_history(history: Optional[List[dict]], event: dict, limit: int = HISTORY_LIMIT) -> List[dict]:
    """Newest first, capped. Returns a new list."""
    return [event, *(history or [])][:limit]


def diff_events(old: Mapping, new: Mapping, now: Optional[datetime] = None) -> List[dict]:
    """Events describing what changed between two versions of one account."""
    account_id = new.get("id") or old.get("id")
    name = new.get("name") or old.get("name") or ""
    events = []

    if new.get("status") != old.get("status"):
        desc = f"{name}: {old.get('status')} -> {new.get('status')}"
        if new.get("status") == "Churned" and new.get("churn_reason"):
            desc += f" ({new['churn_reason']})"
        events.append(make_event(
            STATUS_EVENT_TYPES.get(new.get("status"), "info"), "Status changed", desc, account_id, now,
        ))

    if new.get("plan") != old.get("plan"):
        events.append(make_event(
            "info", "Plan changed", f"{name}: {old.get('plan')} -> {new.get('plan')}", account_id, now,
        ))

    if new.get("last_active") != old.get("last_active"):
        events.append(make_event(
            "info", "Access recorded", f"{name} last access: {new.get('last_active')}", account_id, now,
        ))

    return events
