# neondash/services/journey.py
"""
Success journey: a fixed 5-step checklist per account.

Step ids "1".."5" are stable forever; labels and descriptions come from
JOURNEY_TEMPLATE and may be reworded between releases. Stored journeys are
therefore merged by id on every read: the template supplies the text, the
stored record supplies completion flags.

Status is always derived from the steps:
    0 completed -> not_started, 5 completed -> achieved, otherwise in_progress.

All functions return new structures; callers diff old vs new journeys to
decide on side effects (e.g. the "journey achieved" event).
"""

from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from .dates import parse_timestamp
from .prng import seeded_unit

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
ACHIEVED = "achieved"

DEFAULT_CORE_GOAL = "Gerar resultado recorrente com a plataforma"

JOURNEY_TEMPLATE: List[Dict[str, str]] = [
    {"id": "1", "label": "Ativação",     "description": "Conta configurada e primeiro acesso realizado."},
    {"id": "2", "label": "Método",       "description": "Cliente entendeu e adotou o método de trabalho."},
    {"id": "3", "label": "Execução",     "description": "Rotina de uso estabelecida com entregas semanais."},
    {"id": "4", "label": "Valor Gerado", "description": "Primeiro resultado mensurável atingido."},
    {"id": "5", "label": "Escala",       "description": "Expansão de uso, upsell ou indicação."},
]

STAGE_BADGES: Dict[str, Dict[str, str]] = {
    "1": {"label": "Ativação",     "icon": "target"},
    "2": {"label": "Método",       "icon": "target"},
    "3": {"label": "Execução",     "icon": "zap"},
    "4": {"label": "Valor Gerado", "icon": "trophy"},
    "5": {"label": "Escala",       "icon": "rocket"},
}
SETUP_BADGE: Dict[str, str] = {"label": "Setup", "icon": "target"}


def derive_status(steps: Sequence[Mapping]) -> str:
    done = sum(1 for s in steps if s.get("is_completed"))
    if done == 0:
        return NOT_STARTED
    if done == len(steps):
        return ACHIEVED
    return IN_PROGRESS


def _synthetic_depth(seed_id: str, account_status: str) -> int:
    """How many leading steps a bootstrap journey starts with."""
    r = seeded_unit(seed_id)
    if account_status == "Active":
        if r < 0.25:
            return 5
        if r < 0.60:
            return 4
        return 3
    if account_status == "Risk":
        return 1
    if account_status == "New":
        return 1 if r < 0.5 else 0
    if account_status == "Churned":
        return 2 if r < 0.5 else 0
    return 0


def _build(steps: List[dict], core_goal: str) -> dict:
    return {"core_goal": core_goal, "status": derive_status(steps), "steps": steps}


def merge_journey(
    template: Sequence[Mapping],
    saved: Optional[Mapping],
    seed_id: str,
    account_status: str,
) -> dict:
    """
    Combine the current template with a stored journey.

    With no stored journey a bootstrap one is synthesized from a stable hash
    of `seed_id`, bucketed by account status. Stored step ids that the
    template does not know are dropped.
    """
    if not saved or not saved.get("steps"):
        depth = _synthetic_depth(seed_id, account_status)
        steps = [
            {**step, "is_completed": i < depth, "completed_at": None}
            for i, step in enumerate(template)
        ]
        return _build(steps, DEFAULT_CORE_GOAL)

    saved_by_id = {str(s.get("id")): s for s in saved["steps"]}
    steps = []
    for step in template:
        prior = saved_by_id.get(step["id"], {})
        done = bool(prior.get("is_completed"))
        steps.append({
            **step,
            "is_completed": done,
            "completed_at": prior.get("completed_at") if done else None,
        })
    return _build(steps, saved.get("core_goal") or DEFAULT_CORE_GOAL)


def toggle_step(journey: Mapping, step_id: str, now: Optional[datetime] = None) -> dict:
    """Flip one step; stamps `completed_at` on completion and clears it on undo."""
    now = now or datetime.utcnow()
    if not any(s["id"] == step_id for s in journey["steps"]):
        raise ValueError(f"Unknown journey step: {step_id!r}")

    steps = []
    for step in journey["steps"]:
        if step["id"] == step_id:
            done = not step.get("is_completed")
            step = {**step, "is_completed": done, "completed_at": now.isoformat() if done else None}
        else:
            step = dict(step)
        steps.append(step)
    return _build(steps, journey.get("core_goal") or DEFAULT_CORE_GOAL)


def current_stage_badge(journey: Optional[Mapping]) -> Dict[str, str]:
    """Badge of the highest completed step, or Setup when nothing is done."""
    steps = (journey or {}).get("steps") or []
    completed = [s["id"] for s in steps if s.get("is_completed")]
    if not completed:
        return dict(SETUP_BADGE)
    last = max(completed, key=int)
    return dict(STAGE_BADGES.get(last, SETUP_BADGE))


def completed_count(journey: Optional[Mapping]) -> int:
    return sum(1 for s in (journey or {}).get("steps") or [] if s.get("is_completed"))


def days_stagnant(journey: Mapping, joined_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days since the latest stamped completion (or since joining)."""
    now = now or datetime.utcnow()
    stamps = [
        parse_timestamp(s.get("completed_at"))
        for s in journey.get("steps", [])
        if s.get("is_completed")
    ]
    stamps = [t for t in stamps if t is not None]
    reference = max(stamps) if stamps else parse_timestamp(joined_at) or now
    return max(0, (now - reference).days)
