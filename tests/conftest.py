"""
Shared pytest fixtures for the PMIS test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / physical / financial / registrar: users of institution INST-A
    - outsider: physicalStaff of institution INST-B
    - project: INST-A project created by ``physical``
    - user_factory / project_factory / headers_for: ad-hoc users, projects
      and bearer headers
"""

from datetime import date

import pytest

from pmis import create_app
from pmis.models import db as _db
from pmis.models.auth import ROLE_ADMIN, ROLE_FINANCIAL, ROLE_PHYSICAL, ROLE_REGISTRAR, User
from pmis.models.project import Project
from pmis.services.jwt_service import generate_access_token
from pmis.utils.crypto import hash_password

TEST_PASSWORD = "secret123"
INSTITUTION = "INST-A"
OTHER_INSTITUTION = "INST-B"


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


@pytest.fixture()
def upload_dir(app, tmp_path):
    """Point the file store at a per-test temporary folder."""
    previous = app.config["UPLOAD_FOLDER"]
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    yield tmp_path / "uploads"
    app.config["UPLOAD_FOLDER"] = previous


# ── Users ────────────────────────────────────────────────────────────────


def make_user(username, role, institution_id=INSTITUTION):
    user = User(
        username=username,
        email=f"{username}@pmis.gov.lk",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        role=role,
        institution_id=institution_id,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {generate_access_token(user)}"}


@pytest.fixture()
def admin():
    return make_user("admin", ROLE_ADMIN)


@pytest.fixture()
def physical():
    return make_user("physical", ROLE_PHYSICAL)


@pytest.fixture()
def financial():
    return make_user("financial", ROLE_FINANCIAL)


@pytest.fixture()
def registrar():
    return make_user("registrar", ROLE_REGISTRAR)


@pytest.fixture()
def outsider():
    return make_user("outsider", ROLE_PHYSICAL, institution_id=OTHER_INSTITUTION)


# ── Domain ───────────────────────────────────────────────────────────────


def make_project(creator, name="Bridge Rehabilitation", institution=INSTITUTION, **overrides):
    fields = {
        "project_name": name,
        "institution": institution,
        "start_date": date(2024, 1, 1),
        "estimated_end_date": date(2026, 12, 31),
        "created_by": creator.id if creator is not None else None,
    }
    fields.update(overrides)
    project = Project(**fields)
    _db.session.add(project)
    _db.session.commit()
    return project


@pytest.fixture()
def project(physical):
    return make_project(physical)


@pytest.fixture()
def user_factory():
    return make_user


@pytest.fixture()
def project_factory():
    return make_project


@pytest.fixture()
def headers_for():
    return auth_headers
