"""
main.py
FastAPI application entrypoint for the NeonDash health engine.

What this service does
----------------------
- Stores customer accounts (clients) with revenue, status, health sub-metrics,
  a 5-step success journey and an audit history.
- Computes each account's health score from four weighted sub-metrics, and
  rescores the whole base whenever the weight vector changes.
- Ranks accounts on an engagement leaderboard (health, journey progress,
  recency, revenue) served page by page with a podium on page one.
- Serves portfolio analytics (KPIs, retention evolution) and the accelerator
  growth targets.
- Keeps the AI-agent registry with per-agent token and cost totals, and
  named snapshots of the dashboard numbers.

Design decisions (high level)
-----------------------------
- Tables are created on startup if they don't exist (idempotent, safe for local dev).
- Scoring, journey and ranking logic live in `services/` as pure functions over
  plain dicts; this module only loads rows, calls them, and persists results.
- `health_score` IS stored, but it is always derived: a weight change and the
  rescoring of every account are committed together (`save_weight_change`).
- Journeys are merged with the current step template on every read, so step
  text can change without losing completion flags.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from .db import Base, engine, get_db
from .models import Account, Agent, Mission, Snapshot, StreamEvent
from .schemas import (
    AccountDetailOut,
    AccountIn,
    AccountOut,
    AccountPatch,
    AcceleratorOut,
    AgentIn,
    AgentOut,
    AgentPatch,
    AgentSummaryOut,
    DashboardOut,
    EventOut,
    Factor,
    GlobalHealthOut,
    GoalIn,
    HealthOut,
    JourneyOut,
    KpisOut,
    LeaderboardOut,
    MissionOut,
    ModelPricingOut,
    RetentionPointOut,
    SnapshotIn,
    SnapshotOut,
    TargetIn,
    UsageIn,
    WeightChangeOut,
    WeightsOut,
    WeightValueIn,
)
from .services.accelerator import (
    activate_mission,
    base_health,
    growth_speed,
    live_accounts,
    load_missions,
    mission_progress,
    reset_missions,
)
from .services.accounts import (
    account_to_dict,
    apply_changes,
    new_account,
    record_events,
    write_account,
)
from .services.agents import (
    MODEL_PRICING,
    SORTABLE_FIELDS,
    agent_summary,
    filter_and_sort,
    record_usage,
    reset_agents,
)
from .services.analytics import base_kpis, dashboard_metrics, retention_evolution
from .services.dates import NOW_SENTINEL
from .services.events import HISTORY_LIMIT, make_event
from .services.health import global_score
from .services.journey import (
    ACHIEVED,
    JOURNEY_TEMPLATE,
    current_stage_badge,
    days_stagnant,
    toggle_step,
)
from .services.ranking import LEADERBOARD_PAGE_SIZE, leaderboard_page, rank
from .services.snapshots import capture, default_name as snapshot_default_name
from .services.weights import (
    load_weight_config,
    reset_to_default,
    save_editing_flag,
    save_weight_change,
    set_weight,
    toggle_editing,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="NeonDash Health API",
    description="Customer health scores, success journeys, engagement ranking and growth analytics.",
    version="0.1.0",
)


@app.on_event("startup")
def startup_event() -> None:
    """
    App lifecycle hook: run once when the server starts.

    We create tables if they do not exist yet. This is idempotent (safe to call
    repeatedly). Sample data is generated separately via `db/seed.py`.
    """
    Base.metadata.create_all(bind=engine)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_account_or_404(db: Session, account_id: str) -> Account:
    row = db.get(Account, account_id)
    if not row:
        raise HTTPException(status_code=404, detail="Account not found")
    return row


def _all_accounts(db: Session) -> List[dict]:
    rows = db.query(Account).order_by(Account.created_at.desc()).all()
    return [account_to_dict(r) for r in rows]


def _detail(account: dict) -> dict:
    return {
        **account,
        "stage_badge": current_stage_badge(account["journey"]),
        "days_stagnant": days_stagnant(account["journey"], account["joined_at"]),
    }


# -----------------------------------------------------------------------------
# Accounts
# -----------------------------------------------------------------------------

@app.get("/api/accounts", response_model=List[AccountOut], tags=["Accounts"])
def list_accounts(search: Optional[str] = None, db: Session = Depends(get_db)) -> List[dict]:
    """
    List accounts, newest first.

    `search` matches name, email or company (case-insensitive). Accounts without
    stored metrics or journey are presented with synthesized ones.
    """
    accounts = _all_accounts(db)
    if search:
        term = search.lower()
        accounts = [
            a for a in accounts
            if term in a["name"].lower() or term in a["email"].lower() or term in a["company"].lower()
        ]
    return accounts


@app.post("/api/accounts", response_model=AccountDetailOut, status_code=201, tags=["Accounts"])
def create_account(payload: AccountIn, db: Session = Depends(get_db)) -> dict:
    """
    Create an account.

    Metrics default to a seeded jitter around `health_score` (100 when omitted);
    the stored score is then recomputed with the active weights.
    """
    weights = load_weight_config(db).weights
    data = payload.model_dump(exclude_none=True)
    if "metrics" in data and len(data["metrics"]) < 4:
        data.pop("metrics")  # a partial metrics record falls back to the jittered baseline
    account, events = new_account(data, weights)

    row = Account(id=account["id"], created_at=account["created_at"])
    write_account(row, account)
    db.add(row)
    record_events(db, row, events)
    db.commit()
    db.refresh(row)
    logger.info("Account %s created (%s)", row.id, row.status)
    return _detail(account_to_dict(row))


@app.get("/api/accounts/{account_id}", response_model=AccountDetailOut, tags=["Accounts"])
def get_account(account_id: str, db: Session = Depends(get_db)) -> dict:
    return _detail(account_to_dict(_get_account_or_404(db, account_id)))


@app.patch("/api/accounts/{account_id}", response_model=AccountDetailOut, tags=["Accounts"])
def update_account(account_id: str, payload: AccountPatch, db: Session = Depends(get_db)) -> dict:
    """
    Partially update an account.

    - A metrics change rescores the account with the active weights.
    - Status, plan and last-access changes are recorded in the account
      history and the global event stream.
    """
    row = _get_account_or_404(db, account_id)
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k == "churn_reason"
    }
    if "metrics" in changes:
        changes["metrics"] = {k: v for k, v in changes["metrics"].items() if v is not None}

    updated, events = apply_changes(account_to_dict(row), changes, load_weight_config(db).weights)
    write_account(row, updated)
    record_events(db, row, events)
    db.commit()
    db.refresh(row)
    return _detail(account_to_dict(row))


@app.delete("/api/accounts/{account_id}", status_code=204, tags=["Accounts"])
def delete_account(account_id: str, db: Session = Depends(get_db)) -> Response:
    """Hard delete; there is no tombstone."""
    row = _get_account_or_404(db, account_id)
    db.delete(row)
    db.commit()
    logger.info("Account %s deleted", account_id)
    return Response(status_code=204)


@app.get("/api/accounts/{account_id}/health", response_model=HealthOut, tags=["Health"])
def account_health(account_id: str, db: Session = Depends(get_db)) -> HealthOut:
    """
    Health breakdown for one account.

    Returns:
        HealthOut: { id, name, factors{...}, weights{...}, healthScore }
    """
    account = account_to_dict(_get_account_or_404(db, account_id))
    return HealthOut(
        id=account["id"],
        name=account["name"],
        factors=account["metrics"],
        weights=load_weight_config(db).weights,
        healthScore=account["health_score"],
    )


# -----------------------------------------------------------------------------
# Journey
# -----------------------------------------------------------------------------

@app.post("/api/accounts/{account_id}/journey/steps/{step_id}/toggle", response_model=JourneyOut, tags=["Journey"])
def toggle_journey_step(account_id: str, step_id: str, db: Session = Depends(get_db)) -> dict:
    """
    Flip one journey step.

    Completing the last open step (status -> achieved) also publishes a
    "Journey achieved" event.
    """
    row = _get_account_or_404(db, account_id)
    if step_id not in {s["id"] for s in JOURNEY_TEMPLATE}:
        raise HTTPException(status_code=404, detail="Journey step not found")

    before = account_to_dict(row)["journey"]
    after = toggle_step(before, step_id)
    step = next(s for s in after["steps"] if s["id"] == step_id)

    title = "Journey step completed" if step["is_completed"] else "Journey step reopened"
    events = [make_event("info", title, f"{row.name}: {step['label']}", row.id)]
    if before["status"] != ACHIEVED and after["status"] == ACHIEVED:
        events.append(make_event("success", "Journey achieved", f"{row.name}: {after['core_goal']}", row.id))
        logger.info("Account %s achieved its journey", row.id)

    row.journey = after
    record_events(db, row, events)
    db.commit()
    return after


@app.put("/api/accounts/{account_id}/journey/goal", response_model=JourneyOut, tags=["Journey"])
def set_journey_goal(account_id: str, payload: GoalIn, db: Session = Depends(get_db)) -> dict:
    row = _get_account_or_404(db, account_id)
    journey = {**account_to_dict(row)["journey"], "core_goal": payload.core_goal}
    row.journey = journey
    db.commit()
    return journey


# -----------------------------------------------------------------------------
# Weights
# -----------------------------------------------------------------------------

def _weight_change_response(db: Session, recomputed: int) -> WeightChangeOut:
    config = load_weight_config(db)
    return WeightChangeOut(
        weights=config.weights,
        is_editing=config.is_editing,
        global_score=global_score(_all_accounts(db)),
        recomputed=recomputed,
    )


@app.get("/api/health/weights", response_model=WeightsOut, tags=["Health"])
def get_weights(db: Session = Depends(get_db)) -> WeightsOut:
    config = load_weight_config(db)
    db.commit()  # persists the default row on first read
    return WeightsOut(weights=config.weights, is_editing=config.is_editing)


@app.put("/api/health/weights/{factor}", response_model=WeightChangeOut, tags=["Health"])
def update_weight(factor: Factor, payload: WeightValueIn, db: Session = Depends(get_db)) -> WeightChangeOut:
    """
    Set one weight and rescore every account in the same transaction.

    Out-of-range values are stored as sent; sliders clamp them client-side.
    """
    config = set_weight(load_weight_config(db), factor, payload.value)
    return _weight_change_response(db, save_weight_change(db, config))


@app.post("/api/health/weights/reset", response_model=WeightChangeOut, tags=["Health"])
def reset_weights(db: Session = Depends(get_db)) -> WeightChangeOut:
    """Restore 40/20/30/10 and rescore every account."""
    config = reset_to_default(load_weight_config(db))
    return _weight_change_response(db, save_weight_change(db, config))


@app.post("/api/health/weights/edit", response_model=WeightChangeOut, tags=["Health"])
def toggle_weight_editing(db: Session = Depends(get_db)) -> WeightChangeOut:
    """Flip the editing flag only; no account is rescored."""
    save_editing_flag(db, toggle_editing(load_weight_config(db)))
    return _weight_change_response(db, 0)


@app.get("/api/health/global", response_model=GlobalHealthOut, tags=["Health"])
def global_health(db: Session = Depends(get_db)) -> GlobalHealthOut:
    """Average health over non-test accounts (0 when there are none)."""
    accounts = _all_accounts(db)
    return GlobalHealthOut(
        globalScore=global_score(accounts),
        weights=load_weight_config(db).weights,
        accounts=len(accounts),
    )


# -----------------------------------------------------------------------------
# Ranking
# -----------------------------------------------------------------------------

@app.get("/api/ranking", response_model=LeaderboardOut, tags=["Ranking"])
def ranking(page: int = Query(default=1, ge=1), db: Session = Depends(get_db)) -> dict:
    """
    Engagement leaderboard, LEADERBOARD_PAGE_SIZE entries per page.

    Churned and test accounts are excluded. Ranks are absolute across pages.
    """
    # ties keep fetch order (newest first)
    return leaderboard_page(rank(_all_accounts(db)), page, LEADERBOARD_PAGE_SIZE)


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------

@app.get("/api/events", response_model=List[EventOut], tags=["Events"])
def list_events(limit: int = Query(default=HISTORY_LIMIT, ge=1, le=HISTORY_LIMIT),
                db: Session = Depends(get_db)) -> List[StreamEvent]:
    """Global event stream, newest first."""
    return db.query(StreamEvent).order_by(StreamEvent.timestamp.desc()).limit(limit).all()


@app.delete("/api/events", status_code=204, tags=["Events"])
def clear_events(db: Session = Depends(get_db)) -> Response:
    db.query(StreamEvent).delete()
    db.commit()
    return Response(status_code=204)


# -----------------------------------------------------------------------------
# Analytics
# -----------------------------------------------------------------------------

@app.get("/api/dashboard/metrics", response_model=DashboardOut, tags=["Analytics"])
def dashboard(db: Session = Depends(get_db)) -> dict:
    """Headline KPIs; test accounts are excluded."""
    return dashboard_metrics(_all_accounts(db))


@app.get("/api/dashboard/kpis", response_model=KpisOut, tags=["Analytics"])
def kpis(db: Session = Depends(get_db)) -> dict:
    return base_kpis(_all_accounts(db))


@app.get("/api/retention/evolution", response_model=List[RetentionPointOut], tags=["Analytics"])
def retention(period: str = Query(default="month", pattern="^(week|month|year)$"),
              db: Session = Depends(get_db)) -> List[dict]:
    """Active vs churned accounts over the last week, month (daily) or year (monthly)."""
    return retention_evolution(_all_accounts(db), period)


# -----------------------------------------------------------------------------
# Accelerator
# -----------------------------------------------------------------------------

def _get_mission_or_404(missions: List[Mission], mission_id: str) -> Mission:
    mission = next((m for m in missions if m.id == mission_id), None)
    if mission is None:
        raise HTTPException(status_code=404, detail="Mission not found")
    return mission


def _accelerator_view(db: Session, missions: List[Mission]) -> AcceleratorOut:
    accounts = _all_accounts(db)
    current = len(live_accounts(accounts))
    active = next((m for m in missions if m.status == "active"), None)
    return AcceleratorOut(
        active_count=current,
        base_health=base_health(accounts),
        growth_speed=growth_speed(accounts),
        active_mission_id=active.id if active else None,
        missions=[
            MissionOut.model_validate(m).model_copy(update={"progress": mission_progress(m.target, current)})
            for m in missions
        ],
    )


@app.get("/api/accelerator", response_model=AcceleratorOut, tags=["Accelerator"])
def accelerator(db: Session = Depends(get_db)) -> AcceleratorOut:
    return _accelerator_view(db, load_missions(db))


@app.put("/api/accelerator/missions/{mission_id}/target", response_model=AcceleratorOut, tags=["Accelerator"])
def update_mission_target(mission_id: str, payload: TargetIn, db: Session = Depends(get_db)) -> AcceleratorOut:
    missions = load_missions(db)
    _get_mission_or_404(missions, mission_id).target = payload.target
    db.commit()
    return _accelerator_view(db, missions)


@app.post("/api/accelerator/missions/{mission_id}/activate", response_model=AcceleratorOut, tags=["Accelerator"])
def activate(mission_id: str, db: Session = Depends(get_db)) -> AcceleratorOut:
    missions = load_missions(db)
    _get_mission_or_404(missions, mission_id)
    activate_mission(missions, mission_id)
    db.commit()
    return _accelerator_view(db, missions)


@app.post("/api/accelerator/missions/{mission_id}/complete", response_model=AcceleratorOut, tags=["Accelerator"])
def complete_mission(mission_id: str, db: Session = Depends(get_db)) -> AcceleratorOut:
    missions = load_missions(db)
    mission = _get_mission_or_404(missions, mission_id)
    mission.status = "completed"
    mission.completed_at = datetime.utcnow()
    db.commit()
    return _accelerator_view(db, missions)


@app.post("/api/accelerator/reset", response_model=AcceleratorOut, tags=["Accelerator"])
def reset_accelerator(db: Session = Depends(get_db)) -> AcceleratorOut:
    return _accelerator_view(db, reset_missions(db))


# -----------------------------------------------------------------------------
# Agents
# -----------------------------------------------------------------------------

def _get_agent_or_404(db: Session, agent_id: str) -> Agent:
    agent = db.get(Agent, agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@app.get("/api/agents", response_model=List[AgentOut], tags=["Agents"])
def list_agents(
    search: Optional[str] = None,
    sort: str = Query(default="total_tokens", pattern="^(" + "|".join(SORTABLE_FIELDS) + ")$"),
    direction: str = Query(default="desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
) -> List[Agent]:
    """Agents filtered by `search` (name, description, model), most used first by default."""
    return filter_and_sort(db.query(Agent).all(), search, sort, direction)


@app.post("/api/agents", response_model=AgentOut, status_code=201, tags=["Agents"])
def create_agent(payload: AgentIn, db: Session = Depends(get_db)) -> Agent:
    agent = Agent(**payload.model_dump(), last_used=NOW_SENTINEL)
    db.add(agent)
    db.commit()
    db.refresh(agent)
    logger.info("Agent %s created (%s)", agent.id, agent.model)
    return agent


@app.get("/api/agents/summary", response_model=AgentSummaryOut, tags=["Agents"])
def agents_summary(db: Session = Depends(get_db)) -> dict:
    """Console KPIs: token and cost totals across every agent."""
    return agent_summary(db.query(Agent).all())


@app.post("/api/agents/reset", response_model=List[AgentOut], tags=["Agents"])
def reset_agent_registry(db: Session = Depends(get_db)) -> List[Agent]:
    return reset_agents(db)


@app.get("/api/models", response_model=List[ModelPricingOut], tags=["Agents"])
def list_models() -> List[dict]:
    """Model pricing registry, USD per 1M tokens."""
    return [{"id": model_id, **pricing} for model_id, pricing in MODEL_PRICING.items()]


@app.get("/api/agents/{agent_id}", response_model=AgentOut, tags=["Agents"])
def get_agent(agent_id: str, db: Session = Depends(get_db)) -> Agent:
    return _get_agent_or_404(db, agent_id)


@app.patch("/api/agents/{agent_id}", response_model=AgentOut, tags=["Agents"])
def update_agent(agent_id: str, payload: AgentPatch, db: Session = Depends(get_db)) -> Agent:
    """Partially update an agent's configuration; usage totals are not editable."""
    agent = _get_agent_or_404(db, agent_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(agent, key, value)
    db.commit()
    db.refresh(agent)
    return agent


@app.delete("/api/agents/{agent_id}", status_code=204, tags=["Agents"])
def delete_agent(agent_id: str, db: Session = Depends(get_db)) -> Response:
    agent = _get_agent_or_404(db, agent_id)
    db.delete(agent)
    db.commit()
    logger.info("Agent %s deleted", agent_id)
    return Response(status_code=204)


@app.post("/api/agents/{agent_id}/usage", response_model=AgentOut, tags=["Agents"])
def report_agent_usage(agent_id: str, payload: UsageIn, db: Session = Depends(get_db)) -> Agent:
    """
    Record one chat run.

    Cost is estimated from the agent's model pricing; failed runs add no
    tokens or cost but lower the success rate.
    """
    agent = _get_agent_or_404(db, agent_id)
    record_usage(agent, payload.prompt_tokens, payload.response_tokens, payload.latency_ms, payload.successful)
    db.commit()
    db.refresh(agent)
    return agent


# -----------------------------------------------------------------------------
# Snapshots
# -----------------------------------------------------------------------------

def _get_snapshot_or_404(db: Session, snapshot_id: str) -> Snapshot:
    snapshot = db.get(Snapshot, snapshot_id)
    if not snapshot:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return snapshot


@app.post("/api/snapshots", response_model=SnapshotOut, status_code=201, tags=["Snapshots"])
def create_snapshot(payload: SnapshotIn, db: Session = Depends(get_db)) -> Snapshot:
    """Freeze the current global score, active users, MRR and churn under a name."""
    name = (payload.name or "").strip() or snapshot_default_name(db.query(Snapshot).count())
    snapshot = Snapshot(
        name=name,
        note=payload.note,
        data=capture(_all_accounts(db), payload.timeframe),
        created_at=datetime.utcnow(),
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    logger.info("Snapshot %r captured", name)
    return snapshot


@app.get("/api/snapshots", response_model=List[SnapshotOut], tags=["Snapshots"])
def list_snapshots(db: Session = Depends(get_db)) -> List[Snapshot]:
    return db.query(Snapshot).order_by(Snapshot.created_at.desc()).all()


@app.get("/api/snapshots/{snapshot_id}", response_model=SnapshotOut, tags=["Snapshots"])
def restore_snapshot(snapshot_id: str, db: Session = Depends(get_db)) -> Snapshot:
    """Return the capture exactly as stored."""
    return _get_snapshot_or_404(db, snapshot_id)


@app.delete("/api/snapshots/{snapshot_id}", status_code=204, tags=["Snapshots"])
def delete_snapshot(snapshot_id: str, db: Session = Depends(get_db)) -> Response:
    db.delete(_get_snapshot_or_404(db, snapshot_id))
    db.commit()
    return Response(status_code=204)


@app.get("/", tags=["Meta"])
def root() -> dict:
    """
    Lightweight service check.
    """
    return {"message": "NeonDash health engine is up"}
