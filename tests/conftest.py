"""
Shared pytest fixtures for the Research Project Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - vertical / rc_meeting: reference rows with fixed ids "V1" / "M1"
    - make_user: user factory (one user per role fixture below)
    - auth_headers: bearer-token headers for a user
"""

from datetime import date

import pytest

from research_portal import create_app
from research_portal.models import db as _db
from research_portal.models.auth import User, UserRole
from research_portal.models.taxonomy import RCMeeting, SpecialArea, Vertical
from research_portal.services.jwt_service import generate_access_token


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
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Reference data ───────────────────────────────────────────────────────


@pytest.fixture()
def vertical():
    v = Vertical(id="V1", code="SHMLE", name="Structural Health Monitoring & Life Extension")
    _db.session.add(v)
    _db.session.commit()
    return v


@pytest.fixture()
def special_area():
    a = SpecialArea(id="SA1", name="Disaster Mitigation")
    _db.session.add(a)
    _db.session.commit()
    return a


@pytest.fixture()
def rc_meeting():
    m = RCMeeting(id="M1", meeting_number=42, title="42nd Research Council", date=date(2025, 3, 14))
    _db.session.add(m)
    _db.session.commit()
    return m


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: make_user(role, email=None) → committed User (no password)."""
    counter = {"n": 0}

    def _make(role, email=None, **fields):
        counter["n"] += 1
        role = UserRole.parse(role)
        user = User(
            email=email or f"{role.value.lower()}{counter['n']}@portal.example.org",
            first_name=fields.pop("first_name", role.value.title()),
            last_name=fields.pop("last_name", str(counter["n"])),
            role=role,
            **fields,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def employee(make_user):
    return make_user(UserRole.EMPLOYEE)


@pytest.fixture()
def other_employee(make_user):
    return make_user(UserRole.EMPLOYEE)


@pytest.fixture()
def bkmd(make_user):
    return make_user(UserRole.BKMD)


@pytest.fixture()
def director(make_user):
    return make_user(UserRole.DIRECTOR)


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.ADMIN)


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {generate_access_token(user.id, user.role.value)}"}


@pytest.fixture()
def auth_headers():
    """auth_headers(user) → {"Authorization": "Bearer <jwt>"}"""
    return bearer


# ── Proposal payloads ────────────────────────────────────────────────────


def proposal_payload(**overrides) -> dict:
    payload = {
        "title": "Corrosion monitoring of coastal bridges",
        "description": "Sensor network for chloride ingress",
        "category": "GAP",
        "verticalId": "V1",
        "objectives": "Quantify corrosion rates",
        "methodology": "Embedded sensors",
        "expectedOutcome": "Service-life model",
        "proposedStartDate": "2025-01-01",
        "proposedEndDate": "2026-12-31",
        "estimatedBudget": "1250000.50",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def make_payload():
    """make_payload(**overrides) → valid POST /proposals body."""
    return proposal_payload
