# neondash/services/accelerator.py
"""
Accelerator: staged growth targets ("missions") measured against the live base.

The live base is every non-churned account, test accounts included, matching
what the accelerator gauge has always shown.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..models import Mission

logger = logging.getLogger(__name__)

GROWTH_WINDOW_DAYS: int = 7

DEFAULT_MISSIONS: List[dict] = [
    {"id": "m1", "title": "Missão 1: Base",
     "description": "Estabilidade, produto redondo e validação de canal.",
     "target": 200, "duration_months": 3, "status": "active"},
    {"id": "m2", "title": "Missão 2: Prova Social",
     "description": "Foco em parcerias e validação de modelo.",
     "target": 500, "duration_months": 6, "status": "pending"},
    {"id": "m3", "title": "Missão 3: Escala Controlada",
     "description": "Crescimento com controle e manutenção da base.",
     "target": 700, "duration_months": 9, "status": "pending"},
    {"id": "m4", "title": "Missão 4: Previsibilidade",
     "description": "Retenção, otimização e crescimento previsível.",
     "target": 900, "duration_months": 12, "status": "pending"},
]


def live_accounts(accounts: Iterable[Mapping]) -> List[Mapping]:
    return [a for a in accounts if a.get("status") != "Churned"]


def base_health(accounts: Iterable[Mapping]) -> float:
    """Share (%) of the live base that is neither at risk nor a ghost."""
    live = live_accounts(accounts)
    if not live:
        return 0.0
    risky = sum(1 for a in live if a.get("status") in ("Risk", "Ghost"))
    return round((len(live) - risky) / len(live) * 100, 1)


def growth_speed(accounts: Iterable[Mapping], now: Optional[datetime] = None) -> int:
    """Live accounts that joined within the last GROWTH_WINDOW_DAYS days."""
    since = (now or datetime.utcnow()) - timedelta(days=GROWTH_WINDOW_DAYS)
    return sum(1 for a in live_accounts(accounts) if a.get("joined_at") and a["joined_at"] >= since)


def mission_progress(target: int, current: int) -> float:
    if target <= 0:
        return 100.0
    return round(min(100.0, current / target * 100), 1)


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

def load_missions(db: Session) -> List[Mission]:
    """Missions in display order, seeding the defaults on first use."""
    missions = db.query(Mission).order_by(Mission.position).all()
    if missions:
        return missions
    return reset_missions(db)


def reset_missions(db: Session, now: Optional[datetime] = None) -> List[Mission]:
    db.query(Mission).delete()
    now = now or datetime.utcnow()
    missions = []
    for position, defaults in enumerate(DEFAULT_MISSIONS):
        mission = Mission(position=position, **defaults)
        if mission.status == "active":
            mission.start_date = now
        missions.append(mission)
    db.add_all(missions)
    db.commit()
    logger.info("Accelerator missions reset to defaults")
    return missions


def activate_mission(missions: List[Mission], mission_id: str, now: Optional[datetime] = None) -> Mission:
    """Make one mission active (keeping a manual start date) and pause the old one."""
    target = next((m for m in missions if m.id == mission_id), None)
    if target is None:
        raise ValueError(f"Unknown mission: {mission_id!r}")
    for mission in missions:
        if mission is target:
            mission.status = "active"
            mission.start_date = mission.start_date or now or datetime.utcnow()
        elif mission.status == "active":
            mission.status = "paused"
    logger.info("Mission %s activated", mission_id)
    return target
