"""
conftest.py
------------
Pytest fixtures for FastAPI + SQLAlchemy tests.

Goals:
- Provide a fast, isolated test database (SQLite) that does NOT touch the real Postgres.
- Override the app's `get_db` dependency so API tests use the test Session.
- Create tables once per test session, and clean rows between tests.

Why SQLite (file) and not in-memory?
- FastAPI's TestClient may run requests in different threads.
- SQLite in-memory DB is connection-local; different connections would see
  different (empty) DBs.
- A temporary **file-backed** SQLite database is one physical DB visible to all
  connections in the test process, with no external services required.

`DATABASE_URL` is pointed at the temp file *before* the app is imported, so the
engine created in `neondash.db` (and the startup `create_all`) use it too.

Fixture scopes:
- `test_engine`: session-scoped Engine bound to the temp file; creates tables once.
- `db_session`: function-scoped Session; cleans all tables between tests.
- `client`: function-scoped TestClient with `get_db` overridden to use `db_session`.
- `make_account` / `make_journey`: builders for plain account dicts used by unit tests.
"""

import os
import sys
import tempfile

import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so `import neondash.*` works during pytest collection
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

_fd, TEST_DB_PATH = tempfile.mkstemp(suffix=".db")
os.close(_fd)  # SQLAlchemy will manage connections
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"

from neondash.main import app
from neondash.db import Base, engine
from neondash.services.journey import JOURNEY_TEMPLATE, derive_status


@pytest.fixture(scope="session")
def test_engine():
    """
    The app's Engine, bound to the temporary SQLite database file.

    `Base.metadata.create_all` creates tables once for the entire test session.
    """
    Base.metadata.create_all(bind=engine)
    yield engine

    # --- Teardown in correct order for Windows ---
    engine.dispose()  # release file handle
    try:
        os.remove(TEST_DB_PATH)
    except FileNotFoundError:
        pass


@pytest.fixture(scope="function")
def db_session(test_engine):
    """
    Provide a fresh SQLAlchemy Session for each test function.

    After the test, closes the Session and deletes all rows from all tables
    (reverse dependency order), so tests are isolated and order-independent.
    """
    TestingSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        for tbl in reversed(Base.metadata.sorted_tables):
            session.execute(tbl.delete())
        session.commit()


@pytest.fixture(scope="function")
def client(db_session):
    """
    FastAPI TestClient that uses the test Session instead of the real database.

    Usage in tests:
        def test_something(client, db_session):
            # Arrange: write directly with db_session or through the API
            # Act: call endpoints with client
            # Assert: verify responses and/or DB state
    """
    from neondash.db import get_db

    def override_get_db():
        try:
            yield db_session
        finally:
            # db_session is closed in its own fixture
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_journey():
    """Journey dict with the given step ids completed."""
    def _make(*completed_ids, core_goal="Goal"):
        steps = [
            {**step, "is_completed": step["id"] in completed_ids, "completed_at": None}
            for step in JOURNEY_TEMPLATE
        ]
        return {"core_goal": core_goal, "status": derive_status(steps), "steps": steps}
    return _make


@pytest.fixture
def make_account(make_journey):
    """Plain account dict as produced by `account_to_dict`."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        account = {
            "id": f"acc-{counter['n']}",
            "name": f"Account {counter['n']}",
            "company": "Acme",
            "email": f"a{counter['n']}@acme.test",
            "plan": "Pro",
            "status": "Active",
            "mrr": 0.0,
            "health_score": 50,
            "metrics": {"engagement": 50.0, "support": 50.0, "finance": 50.0, "risk": 50.0},
            "journey": make_journey(),
            "history": [],
            "last_active": "Nunca",
            "joined_at": None,
            "is_test": False,
            "churn_reason": None,
        }
        account.update(overrides)
        return account
    return _make
