# neondash/db.py
"""
neondash/db.py

Database configuration and session management for the NeonDash service.

This module sets up the SQLAlchemy engine, session factory, and declarative base
for ORM models. It also defines a FastAPI dependency (`get_db`) that provides
a database session to API request handlers.

Key features:
- Uses PostgreSQL by default (connection string points to the `db` service in Docker).
- Any SQLAlchemy URL works through `DATABASE_URL` (the test suite points it at SQLite).
- Connection is robust to transient DB restarts (`pool_pre_ping=True`).
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# -----------------------------------------------------------------------------
# Database URL configuration
# -----------------------------------------------------------------------------

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg2://postgres:postgres@db:5432/neondash",
)

# SQLite needs cross-thread access for FastAPI's threadpool
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, future=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

Base = declarative_base()


# FastAPI dependency
def get_db():
    """
    Provide a SQLAlchemy database session to FastAPI request handlers.

    Usage in a FastAPI route:
        @app.get("/api/accounts/{account_id}")
        def read_account(account_id: str, db: Session = Depends(get_db)):
            return db.get(Account, account_id)

    Yields:
        Session: A SQLAlchemy session connected to the configured database.

    Ensures:
        - A session is opened when the request starts.
        - The session is closed automatically when the request ends.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
