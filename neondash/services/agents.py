# neondash/services/agents.py
"""
AI agent registry: configured agents plus their usage and cost accounting.

Chat turns run against a hosted LLM outside this service; callers report the
token usage of each run and the registry folds it into the agent's totals.
Cost is estimated from MODEL_PRICING (USD per 1M tokens).
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models import Agent

logger = logging.getLogger(__name__)

AGENT_STATUSES = ("online", "offline", "maintenance", "training")

MODEL_PRICING: Dict[str, Dict] = {
    "gpt-4o":            {"provider": "OpenAI",    "input_price": 2.50,  "output_price": 10.00},
    "gpt-4o-mini":       {"provider": "OpenAI",    "input_price": 0.15,  "output_price": 0.60},
    "gemini-1.5-pro":    {"provider": "Google",    "input_price": 1.25,  "output_price": 5.00},
    "gemini-1.5-flash":  {"provider": "Google",    "input_price": 0.075, "output_price": 0.30},
    "claude-3-5-sonnet": {"provider": "Anthropic", "input_price": 3.00,  "output_price": 15.00},
}
FALLBACK_PRICING: Dict[str, float] = {"input_price": 0.50, "output_price": 1.50}

SORTABLE_FIELDS = (
    "name", "model", "status", "total_tokens", "cost",
    "runs", "avg_latency", "success_rate", "created_at",
)

DEFAULT_AGENTS: List[dict] = [
    {"name": "Sentinela de Churn", "model": "gpt-4o", "status": "online",
     "description": "Analisa contas em risco e sugere ações de retenção.",
     "system_prompt": "Você é um analista de customer success focado em retenção."},
    {"name": "Copiloto de Onboarding", "model": "gemini-1.5-flash", "status": "online",
     "description": "Guia novos clientes pelos primeiros passos da jornada.",
     "system_prompt": "Você ajuda clientes novos a concluir a ativação."},
    {"name": "Redator de Relatórios", "model": "gpt-4o-mini", "status": "offline",
     "description": "Resume a saúde da base em relatórios semanais.",
     "system_prompt": "Você escreve resumos executivos objetivos."},
]


def estimate_cost(model: str, prompt_tokens: int, response_tokens: int) -> float:
    pricing = MODEL_PRICING.get(model, FALLBACK_PRICING)
    return (prompt_tokens / 1_000_000) * pricing["input_price"] \
        + (response_tokens / 1_000_000) * pricing["output_price"]


def record_usage(
    agent: Agent,
    prompt_tokens: int,
    response_tokens: int,
    latency_ms: float,
    successful: bool = True,
    now: Optional[datetime] = None,
) -> Agent:
    """
    Fold one run into the agent's totals.

    Failed runs count toward `runs`, latency and success rate but add no
    tokens or cost.
    """
    runs = agent.runs or 0
    if successful:
        agent.total_tokens = (agent.total_tokens or 0) + prompt_tokens + response_tokens
        agent.cost = (agent.cost or 0.0) + estimate_cost(agent.model, prompt_tokens, response_tokens)
    agent.avg_latency = ((agent.avg_latency or 0.0) * runs + latency_ms) / (runs + 1)
    agent.success_rate = ((agent.success_rate or 0.0) * runs + (100.0 if successful else 0.0)) / (runs + 1)
    agent.runs = runs + 1
    agent.last_used = (now or datetime.utcnow()).isoformat()
    return agent


def agent_summary(agents: Iterable[Agent]) -> dict:
    agents = list(agents)
    return {
        "total_agents": len(agents),
        "active_agents": sum(1 for a in agents if a.status == "online"),
        "total_tokens": sum(a.total_tokens or 0 for a in agents),
        "total_cost": round(sum(a.cost or 0.0 for a in agents), 6),
        "avg_success_rate": round(sum(a.success_rate or 0.0 for a in agents) / len(agents), 1) if agents else 0.0,
    }


def filter_and_sort(
    agents: Iterable[Agent],
    search: Optional[str] = None,
    sort: str = "total_tokens",
    direction: str = "desc",
) -> List[Agent]:
    """Search name, description and model; numbers sort numerically, text case-insensitively."""
    if sort not in SORTABLE_FIELDS:
        raise ValueError(f"Unknown sort field: {sort!r}")
    result = list(agents)
    if search:
        term = search.lower()
        result = [
            a for a in result
            if term in (a.name or "").lower()
            or term in (a.description or "").lower()
            or term in (a.model or "").lower()
        ]

    def key(agent: Agent):
        value = getattr(agent, sort)
        return value.lower() if isinstance(value, str) else value

    return sorted(result, key=key, reverse=(direction == "desc"))


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

def reset_agents(db: Session) -> List[Agent]:
    """Replace the registry with the default roster."""
    db.query(Agent).delete()
    agents = [Agent(**defaults) for defaults in DEFAULT_AGENTS]
    db.add_all(agents)
    db.commit()
    logger.info("Agent registry reset to %d defaults", len(agents))
    return agents
