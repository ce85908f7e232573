"""
Shared pytest fixtures for the GRC portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - fixed_clock: Deterministic "now" for lifecycle and registry services
    - client_profile / consultant / audit_template: pre-created entities
"""

from datetime import datetime, timezone

import pytest

from grc_portal import create_app
from grc_portal.models import db as _db

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

AUDIT_QUESTIONS = [
    {"id": "q1", "text": "Describe the audit scope", "type": "text", "options": []},
    {"id": "q2", "text": "Preferred audit window", "type": "radio", "options": ["Q1", "Q2", "Q3"]},
    {
        "id": "q3",
        "text": "Systems in scope",
        "type": "checkbox",
        "options": ["ERP", "CRM", "Network"],
    },
]


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
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_NOW


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def client_profile(session):
    """A registered client (account + profile in NOT_STARTED)."""
    from grc_portal.services.account_directory import AccountDirectory

    return AccountDirectory(session).register_client({
        "email": "ciso@acme.example",
        "fullName": "Dana Reyes",
        "organization": "Acme Corp",
    })


@pytest.fixture()
def consultant(session, fixed_clock):
    """A freshly registered consultant in PENDING_REVIEW."""
    from grc_portal.services.consultant_lifecycle import ConsultantLifecycle

    return ConsultantLifecycle(session, clock=fixed_clock).register({
        "email": "jordan@audit.example",
        "contactFirstName": "Jordan",
        "contactLastName": "Lee",
        "phone": "+1 555 0100",
        "servicesOffered": ["AUDIT"],
    })


@pytest.fixture()
def audit_template(session):
    """The AUDIT service template."""
    from grc_portal.services.scoping_form_registry import ScopingFormRegistry

    return ScopingFormRegistry(session).create_template("AUDIT", AUDIT_QUESTIONS)
