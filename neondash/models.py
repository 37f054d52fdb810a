"""
SQLAlchemy ORM models for the NeonDash service.

These tables back the health engine and its dashboards:
- Account: a customer account ("client") with revenue, lifecycle status,
  health sub-metrics, success journey and audit history (JSON columns)
- HealthWeights: the single persisted weight vector used by the health score
- StreamEvent: global activity stream shared by every account
- Mission: accelerator growth targets
- Agent: AI-agent registry with usage totals
- Snapshot: named dashboard captures

The JSON columns are treated as opaque documents by the store; the services
layer always writes fresh dicts/lists so SQLAlchemy sees the change.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Boolean, Text

from .db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """Customer account with revenue, derived health score, journey and history."""
    __tablename__ = "clients"
    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    company = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")
    plan = Column(String, nullable=False, default="Starter")       # Starter | Pro | Enterprise
    status = Column(String, nullable=False, default="New")         # Active | Risk | Churned | New | Ghost
    mrr = Column(Float, nullable=False, default=0.0)
    health_score = Column(Integer, nullable=False, default=0)
    metrics = Column(JSON, nullable=True)                          # {engagement, support, finance, risk}
    journey = Column(JSON, nullable=True)                          # {core_goal, status, steps[5]}
    history = Column(JSON, nullable=False, default=list)           # newest first, capped
    last_active = Column(String, nullable=False, default="Nunca")  # ISO timestamp | "Agora" | "Nunca"
    joined_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    is_test = Column(Boolean, nullable=False, default=False)
    churn_reason = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class HealthWeights(Base):
    """Single-row table (id=1) holding the active weight vector."""
    __tablename__ = "health_weights"
    id = Column(Integer, primary_key=True)
    engagement = Column(Float, nullable=False, default=40.0)
    support = Column(Float, nullable=False, default=20.0)
    finance = Column(Float, nullable=False, default=30.0)
    risk = Column(Float, nullable=False, default=10.0)
    is_editing = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class StreamEvent(Base):
    """Global activity stream entry (account audit events, journey celebrations)."""
    __tablename__ = "stream_events"
    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), nullable=True, index=True)
    type = Column(String, nullable=False, default="info")           # info | warning | error | success
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class Mission(Base):
    """Accelerator growth target: reach `target` non-churned accounts."""
    __tablename__ = "missions"
    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    target = Column(Integer, nullable=False)
    duration_months = Column(Integer, nullable=False, default=3)
    status = Column(String, nullable=False, default="pending")      # active | paused | pending | completed
    start_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)


class Agent(Base):
    """AI agent in the console registry, with accumulated usage and cost."""
    __tablename__ = "agents"
    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    model = Column(String, nullable=False, default="gpt-4o")
    status = Column(String, nullable=False, default="offline")      # online | offline | maintenance | training
    system_prompt = Column(Text, nullable=False, default="")
    temperature = Column(Float, nullable=False, default=0.7)
    total_tokens = Column(Integer, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0.0)                 # USD
    runs = Column(Integer, nullable=False, default=0)
    avg_latency = Column(Float, nullable=False, default=0.0)          # ms
    success_rate = Column(Float, nullable=False, default=100.0)       # %
    last_used = Column(String, nullable=False, default="Agora")       # ISO timestamp | "Agora"
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class Snapshot(Base):
    """Named, frozen capture of the headline dashboard numbers."""
    __tablename__ = "snapshots"
    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    data = Column(JSON, nullable=False)                               # {global_score, active_users, mrr, churn, timeframe, timestamp}
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
