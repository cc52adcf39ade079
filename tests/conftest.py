"""
Shared pytest fixtures for the setup engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate, FrozenClock installed (autouse)
    - client: Flask test client (function-scoped)
    - clock: the FrozenClock driving deadlines for the current test
    - team: a team room with a host, a leader and two members
    - rule_templates: three active rule templates

Factories live in tests/factories.py.
"""

import pytest

from collab import create_app
from collab.core.clock import FrozenClock, SystemClock
from collab.models import db as _db

from factories import T0, make_team, make_templates


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context with a frozen clock, rollback after test, recreate tables."""
    app.extensions["clock"] = FrozenClock(T0)
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
    app.extensions["clock"] = SystemClock()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def clock(app):
    return app.extensions["clock"]


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def team():
    return make_team()


@pytest.fixture()
def rule_templates():
    return make_templates(
        "Reply within 24 hours.",
        "Share progress before meetings.",
        "Keep documents up to date.",
    )
