# neondash/services/ranking.py
"""
Engagement ranking (leaderboard).

Engagement score (ranking only, unbounded above):
    health_score * 2
  + stage weight of EVERY completed journey step (cumulative, not just the highest)
  + recency bonus: "Agora" 150; days since last access <=1: 100, <=3: 50, <=7: 20
  + revenue bonus: min(200, mrr / 10)

Churned and test accounts never rank. Ties keep input order (stable sort).
"""

import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from .dates import NOW_SENTINEL, parse_timestamp
from .health import round_half_up
from .journey import completed_count, current_stage_badge

STAGE_WEIGHTS: Dict[str, int] = {
    "1": 100,   # Ativação
    "2": 250,   # Método
    "3": 500,   # Execução
    "4": 800,   # Valor Gerado
    "5": 1000,  # Escala
}
UNKNOWN_STAGE_WEIGHT: int = 50

RECENCY_NOW_BONUS: int = 150
RECENCY_BUCKETS = ((1, 100), (3, 50), (7, 20))  # (max days since access, bonus)

MRR_BONUS_CAP: float = 200.0
MRR_BONUS_DIVISOR: float = 10.0

LEADERBOARD_PAGE_SIZE: int = 10
PODIUM_SIZE: int = 3
HIGH_PERFORMER_SCORE: int = 2000


def recency_bonus(last_active, now: Optional[datetime] = None) -> int:
    if last_active == NOW_SENTINEL:
        return RECENCY_NOW_BONUS
    seen = parse_timestamp(last_active)
    if seen is None:
        return 0
    now = now or datetime.utcnow()
    days = math.floor((now - seen).total_seconds() / 86400)
    for max_days, bonus in RECENCY_BUCKETS:
        if days <= max_days:
            return bonus
    return 0


def engagement_score(account: Mapping, now: Optional[datetime] = None) -> int:
    score = float(account.get("health_score") or 0) * 2

    for step in (account.get("journey") or {}).get("steps") or []:
        if step.get("is_completed"):
            score += STAGE_WEIGHTS.get(str(step.get("id")), UNKNOWN_STAGE_WEIGHT)

    score += recency_bonus(account.get("last_active"), now)

    mrr = float(account.get("mrr") or 0)
    if mrr > 0:
        score += min(MRR_BONUS_CAP, mrr / MRR_BONUS_DIVISOR)

    return round_half_up(score)


def is_rankable(account: Mapping) -> bool:
    return account.get("status") != "Churned" and not account.get("is_test")


def rank(accounts: Iterable[Mapping], now: Optional[datetime] = None) -> List[dict]:
    """
    Score eligible accounts and order them best first.

    Returns entries of {rank, score, account, stage_badge, progress}; `rank`
    is 1-based and absolute across the whole list.
    """
    now = now or datetime.utcnow()
    scored = [(engagement_score(a, now), a) for a in accounts if is_rankable(a)]
    scored.sort(key=lambda pair: pair[0], reverse=True)  # stable: ties keep input order

    entries = []
    for position, (score, account) in enumerate(scored, start=1):
        journey = account.get("journey") or {}
        total_steps = len(journey.get("steps") or []) or len(STAGE_WEIGHTS)
        entries.append({
            "rank": position,
            "score": score,
            "account": account,
            "stage_badge": current_stage_badge(journey),
            "progress": round(completed_count(journey) / total_steps * 100, 1),
        })
    return entries


def leaderboard_page(ranked: List[dict], page: int = 1, page_size: int = LEADERBOARD_PAGE_SIZE) -> dict:
    """
    Slice a ranked list into one leaderboard page.

    Page 1 puts its first PODIUM_SIZE entries on the podium and lists the
    rest; later pages list every entry. Pages past the end are empty.
    """
    total = len(ranked)
    total_pages = math.ceil(total / page_size) if total else 0
    start = (page - 1) * page_size
    window = ranked[start:start + page_size]

    if page == 1:
        podium, entries = window[:PODIUM_SIZE], window[PODIUM_SIZE:]
    else:
        podium, entries = [], window

    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
        "high_performers": sum(1 for e in ranked if e["score"] > HIGH_PERFORMER_SCORE),
        "podium": podium,
        "entries": entries,
    }
