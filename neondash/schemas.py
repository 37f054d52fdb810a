"""
Pydantic schemas for API input/output.

These classes define how data is serialized/deserialized between the API
and clients. They are used in FastAPI route definitions as response models
or request bodies.

Schemas:
- AccountIn / AccountPatch: create and partial-update bodies for accounts.
- AccountOut / AccountDetailOut: account listing and single-account view.
- HealthOut: health breakdown (factors, weights, score) for one account.
- WeightsOut / WeightValueIn / WeightChangeOut: weight configuration.
- LeaderboardOut: one page of the engagement ranking.
- EventOut, DashboardOut, KpisOut, RetentionPointOut, AcceleratorOut.
- AgentIn / AgentPatch / AgentOut / UsageIn: AI-agent registry and usage reports.
- SnapshotIn / SnapshotOut: named dashboard captures.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Status = Literal["Active", "Risk", "Churned", "New", "Ghost"]
Plan = Literal["Starter", "Pro", "Enterprise"]
Factor = Literal["engagement", "support", "finance", "risk"]


class MetricsIn(BaseModel):
    """Sub-scores (0..100). Omitted fields keep their current value on PATCH."""
    engagement: Optional[float] = Field(default=None, ge=0, le=100)
    support: Optional[float] = Field(default=None, ge=0, le=100)
    finance: Optional[float] = Field(default=None, ge=0, le=100)
    risk: Optional[float] = Field(default=None, ge=0, le=100)


class AccountIn(BaseModel):
    """Body for POST /api/accounts."""
    name: str
    company: str = ""
    email: str = ""
    plan: Plan = "Starter"
    status: Status = "New"
    mrr: float = Field(default=0.0, ge=0)
    health_score: Optional[int] = Field(default=None, ge=0, le=100)
    metrics: Optional[MetricsIn] = None
    last_active: Optional[str] = None
    joined_at: Optional[str] = None
    is_test: bool = False
    churn_reason: Optional[str] = None


class AccountPatch(BaseModel):
    """Body for PATCH /api/accounts/{id}; only the fields sent are changed."""
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    plan: Optional[Plan] = None
    status: Optional[Status] = None
    mrr: Optional[float] = Field(default=None, ge=0)
    metrics: Optional[MetricsIn] = None
    last_active: Optional[str] = None
    joined_at: Optional[str] = None
    is_test: Optional[bool] = None
    churn_reason: Optional[str] = None


class JourneyStepOut(BaseModel):
    id: str
    label: str
    description: str
    is_completed: bool
    completed_at: Optional[str] = None


class JourneyOut(BaseModel):
    core_goal: str
    status: Literal["not_started", "in_progress", "achieved"]
    steps: List[JourneyStepOut]


class GoalIn(BaseModel):
    core_goal: str = Field(min_length=1)


class StageBadgeOut(BaseModel):
    label: str
    icon: str


class EventOut(BaseModel):
    """History entry / global stream entry."""
    model_config = ConfigDict(from_attributes=True)
    id: str
    type: str
    title: str
    description: str
    timestamp: datetime
    account_id: Optional[str] = None


class AccountOut(BaseModel):
    """Public account view for GET /api/accounts."""
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    company: str
    email: str
    plan: str
    status: str
    mrr: float
    health_score: int
    metrics: Dict[str, float]
    journey: JourneyOut
    last_active: str
    joined_at: datetime
    is_test: bool
    churn_reason: Optional[str] = None


class AccountDetailOut(AccountOut):
    """Single-account view with history and derived journey info."""
    history: List[EventOut]
    stage_badge: StageBadgeOut
    days_stagnant: int


class HealthOut(BaseModel):
    """Detailed health breakdown returned by GET /api/accounts/{id}/health."""
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    factors: Dict[str, float]
    weights: Dict[str, float]
    healthScore: int


class WeightsOut(BaseModel):
    weights: Dict[str, float]
    is_editing: bool


class WeightValueIn(BaseModel):
    """Body for PUT /api/health/weights/{factor}. Range checks are the UI's job."""
    value: float


class WeightChangeOut(WeightsOut):
    global_score: int
    recomputed: int


class GlobalHealthOut(BaseModel):
    globalScore: int
    weights: Dict[str, float]
    accounts: int


class RankedAccountOut(BaseModel):
    id: str
    name: str
    company: str
    status: str


class RankingEntryOut(BaseModel):
    rank: int
    score: int
    account: RankedAccountOut
    stage_badge: StageBadgeOut
    progress: float


class LeaderboardOut(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    high_performers: int
    podium: List[RankingEntryOut]
    entries: List[RankingEntryOut]


class DashboardOut(BaseModel):
    total_users: int
    total_mrr: float
    churn_rate: float
    global_score: int


class KpisOut(BaseModel):
    total: int
    active: int
    risk: int
    avg_engagement: int
    arpu: float


class RetentionPointOut(BaseModel):
    name: str
    active: int
    churn: int


class MissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    title: str
    description: str
    target: int
    duration_months: int
    status: str
    start_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: float = 0.0


class TargetIn(BaseModel):
    target: int = Field(gt=0)


class AcceleratorOut(BaseModel):
    active_count: int
    base_health: float
    growth_speed: int
    active_mission_id: Optional[str] = None
    missions: List[MissionOut]


AgentStatus = Literal["online", "offline", "maintenance", "training"]
Timeframe = Literal["1h", "24h", "7d", "30d"]


class AgentIn(BaseModel):
    """Body for POST /api/agents; usage totals always start at zero."""
    name: str = Field(min_length=1)
    description: str = ""
    model: str = "gpt-4o"
    status: AgentStatus = "offline"
    system_prompt: str = ""
    temperature: float = Field(default=0.7, ge=0, le=2)


class AgentPatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    model: Optional[str] = None
    status: Optional[AgentStatus] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)


class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())
    id: str
    name: str
    description: str
    model: str
    status: str
    system_prompt: str
    temperature: float
    total_tokens: int
    cost: float
    runs: int
    avg_latency: float
    success_rate: float
    last_used: str
    created_at: datetime


class UsageIn(BaseModel):
    """One chat run reported by the playground."""
    prompt_tokens: int = Field(ge=0)
    response_tokens: int = Field(ge=0)
    latency_ms: float = Field(default=0.0, ge=0)
    successful: bool = True


class AgentSummaryOut(BaseModel):
    total_agents: int
    active_agents: int
    total_tokens: int
    total_cost: float
    avg_success_rate: float


class ModelPricingOut(BaseModel):
    id: str
    provider: str
    input_price: float
    output_price: float


class SnapshotIn(BaseModel):
    name: Optional[str] = None
    note: Optional[str] = None
    timeframe: Timeframe = "24h"


class SnapshotDataOut(BaseModel):
    global_score: int
    active_users: int
    mrr: float
    churn: float
    timeframe: str
    timestamp: str


class SnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    note: Optional[str] = None
    data: SnapshotDataOut
    created_at: datetime
