# db/seed.py
"""
Populate the development DB with a *realistic* book of customer accounts so the
health engine, leaderboard and retention charts have something to show.

Key points:
- Status mix (Active / Risk / New / Ghost / Churned) with status-aware metrics:
  healthy accounts score high, risky and ghost accounts score low.
- Plan-aware MRR (Starter < Pro < Enterprise).
- Join dates over the past year; last access correlated with status
  (churned accounts stop accessing, ghosts have not logged in for weeks).
- A few test accounts, which every aggregate ignores.
- Journeys are synthesized from the account id, health scores computed with the
  stored weight vector, exactly as the API does for new accounts.
"""

import argparse
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Tuple

# --- Add the project root to sys.path so the package imports without install ---
import sys
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from neondash.db import Base, engine, SessionLocal
from neondash.models import Account, Agent, StreamEvent
from neondash.services.accounts import new_account, record_events, write_account
from neondash.services.agents import record_usage, reset_agents
from neondash.services.weights import load_weight_config

try:
    from faker import Faker
except ImportError:
    raise SystemExit("Install Faker: pip install faker")

fake = Faker()

PLANS = ["Starter", "Pro", "Enterprise"]
TEST_ACCOUNT_SHARE = 0.05


# ----------------------------
# Persona model (status-driven)
# ----------------------------
@dataclass(frozen=True)
class Persona:
    baseline_score: Tuple[int, int]   # centre of the jittered sub-metrics
    last_access_days: Tuple[int, int] # days since last access
    now_share: float                  # chance the account is active right now

PERSONAS = {
    "Active":  Persona((70, 95), (0, 3),   0.30),
    "New":     Persona((60, 85), (0, 5),   0.20),
    "Risk":    Persona((30, 60), (4, 20),  0.00),
    "Ghost":   Persona((20, 45), (21, 60), 0.00),
    "Churned": Persona((5, 35),  (10, 90), 0.00),
}
STATUS_WEIGHTS = {"Active": 0.45, "New": 0.15, "Risk": 0.18, "Ghost": 0.08, "Churned": 0.14}

MRR_RANGES = {"Starter": (49, 199), "Pro": (199, 799), "Enterprise": (800, 4000)}


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed the NeonDash database with sample accounts.")
    p.add_argument("--accounts", type=int, default=60)
    p.add_argument("--reset", action="store_true")
    p.add_argument("--seed", type=int, default=None)
    return p.parse_args()

def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

def ensure_tables() -> None:
    Base.metadata.create_all(bind=engine)

def choose_status() -> str:
    return random.choices(list(STATUS_WEIGHTS), weights=list(STATUS_WEIGHTS.values()), k=1)[0]

def last_access(persona: Persona, joined_at: datetime) -> str:
    if random.random() < persona.now_share:
        return "Agora"
    seen = datetime.utcnow() - timedelta(days=random.randint(*persona.last_access_days),
                                         hours=random.randint(0, 23))
    return max(seen, joined_at).isoformat()

def account_payload() -> dict:
    status = choose_status()
    persona = PERSONAS[status]
    plan = random.choices(PLANS, weights=[0.5, 0.35, 0.15], k=1)[0]
    joined_at = fake.date_time_between(start_date="-1y", end_date="now")
    return {
        "name": fake.name(),
        "company": fake.company(),
        "email": fake.company_email(),
        "plan": plan,
        "status": status,
        "mrr": round(random.uniform(*MRR_RANGES[plan]), 2),
        "health_score": random.randint(*persona.baseline_score),
        "last_active": last_access(persona, joined_at),
        "joined_at": joined_at.isoformat(),
        "is_test": random.random() < TEST_ACCOUNT_SHARE,
        "churn_reason": random.choice(["Cancelou", "Não Renovou", "Lead Frio"]) if status == "Churned" else None,
    }

def seed_accounts(session, count: int) -> None:
    weights = load_weight_config(session).weights
    for _ in range(count):
        account, events = new_account(account_payload(), weights)
        row = Account(id=account["id"], created_at=account["created_at"])
        write_account(row, account)
        session.add(row)
        record_events(session, row, events)
    session.commit()

def seed_agents(session, runs_per_agent: int = 25) -> None:
    """Default roster with a plausible usage history (about 5% failed runs)."""
    for agent in reset_agents(session):
        for _ in range(random.randint(runs_per_agent // 2, runs_per_agent)):
            record_usage(
                agent,
                prompt_tokens=random.randint(200, 2500),
                response_tokens=random.randint(100, 1500),
                latency_ms=random.uniform(400, 3500),
                successful=random.random() > 0.05,
                now=fake.date_time_between(start_date="-30d", end_date="now"),
            )
    session.commit()

def main() -> None:
    args = parse_args()
    if args.seed is not None:
        random.seed(args.seed); Faker.seed(args.seed)

    if args.reset:
        print("⚠️  Dropping & recreating tables ..."); reset_db()
    else:
        ensure_tables()

    session = SessionLocal()

    existing = session.query(Account).count()
    if existing > 0 and not args.reset:
        print(f"DB already has {existing} accounts; use --reset to reseed.")
        session.close(); return

    target = max(20, int(args.accounts))
    print(f"Creating {target} accounts with status-aware personas...")
    seed_accounts(session, target)
    seed_agents(session)

    # Summary
    by_status = {
        status: session.query(Account).filter(Account.status == status).count()
        for status in STATUS_WEIGHTS
    }
    tests = session.query(Account).filter(Account.is_test.is_(True)).count()
    events = session.query(StreamEvent).count()
    print("\n✅ Seed complete")
    print(f"Accounts:        {target}")
    for status, n in by_status.items():
        print(f"  {status:<8}       {n}")
    print(f"Test accounts:   {tests}")
    print(f"Stream events:   {events}")
    print(f"Agents:          {session.query(Agent).count()}")
    session.close()

if __name__ == "__main__":
    main()
