"""
Shared pytest fixtures for the Achievement Tracker test suite.

Provides:
    - app: Flask application (session-scoped, in-memory content store)
    - session: Per-test schema reset + role seeding + content store wipe (autouse)
    - client: Flask test client (function-scoped)
    - services: the app's wired service container
    - make_user / make_student / make_lecturer: ORM factories
    - principal_for / auth_headers: identity helpers
    - cast: a standard set of people (admin, two advisors, advisees, strays)
"""

from types import SimpleNamespace

import pytest

from app import create_app
from app.models import db as _db
from app.models.academic import Lecturer, Student
from app.models.auth import Role, User
from app.services import jwt_service
from app.services.container import get_services
from app.services.identity import principal_for as _principal_for
from app.services.permission_service import seed_default_roles
from app.stores.blob_store import LocalBlobStore
from app.utils.crypto import hash_password

DEFAULT_PASSWORD = "Passw0rd!"
_PASSWORD_HASH = None


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    upload_root = tmp_path_factory.mktemp("uploads")
    application.config["UPLOAD_ROOT"] = str(upload_root)
    with application.app_context():
        services = get_services()
        services.blobs = LocalBlobStore(str(upload_root), application.config["UPLOAD_URL_PREFIX"])
        services.lifecycle.blobs = services.blobs
    return application


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: fresh schema, seeded roles, empty content store."""
    with app.app_context():
        _db.create_all()
        seed_default_roles()
        _db.session.commit()
        get_services().contents.clear()
        yield
        _db.session.rollback()
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def services(app):
    return get_services()


# ── Factories ────────────────────────────────────────────────────────────


def _password_hash():
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(DEFAULT_PASSWORD, rounds=4)
    return _PASSWORD_HASH


@pytest.fixture()
def make_user():
    def _make(role_name, username, full_name=None, is_active=True):
        role = Role.query.filter_by(name=role_name).first()
        user = User(
            username=username,
            email=f"{username}@campus.edu",
            password_hash=_password_hash(),
            full_name=full_name or username.replace("_", " ").title(),
            role_id=role.id,
            is_active=is_active,
        )
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_lecturer(make_user):
    def _make(username, full_name=None):
        user = make_user("advisor", username, full_name)
        lecturer = Lecturer(user_id=user.id, lecturer_number=f"L-{username}", department="Informatics")
        _db.session.add(lecturer)
        _db.session.commit()
        return lecturer
    return _make


@pytest.fixture()
def make_student(make_user):
    def _make(username, advisor=None, full_name=None):
        user = make_user("student", username, full_name)
        student = Student(
            user_id=user.id,
            student_number=f"S-{username}",
            program_study="Computer Science",
            academic_year="2024",
            advisor_id=advisor.id if advisor is not None else None,
        )
        _db.session.add(student)
        _db.session.commit()
        return student
    return _make


# ── Identity helpers ─────────────────────────────────────────────────────


@pytest.fixture()
def principal_for():
    def _principal(user_or_profile):
        user = getattr(user_or_profile, "user", None) or user_or_profile
        return _principal_for(user)
    return _principal


@pytest.fixture()
def auth_headers():
    def _headers(user_or_profile):
        user = getattr(user_or_profile, "user", None) or user_or_profile
        token = jwt_service.generate_access_token(
            user.id, user.role_name, user.role.permission_names,
        )
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture()
def cast(make_user, make_lecturer, make_student, principal_for):
    """Admin, two advisors with advisees, and a student without an advisor.

        advisor_a → alice, bob
        advisor_b → carol
        (none)    → dave
    """
    admin = make_user("admin", "admin", "Site Admin")
    advisor_a = make_lecturer("advisor_a", "Dr. Ayu")
    advisor_b = make_lecturer("advisor_b", "Dr. Budi")
    alice = make_student("alice", advisor_a, "Alice Anders")
    bob = make_student("bob", advisor_a, "Bob Brown")
    carol = make_student("carol", advisor_b, "Carol Chen")
    dave = make_student("dave", None, "Dave Diaz")
    return SimpleNamespace(
        admin=admin,
        advisor_a=advisor_a,
        advisor_b=advisor_b,
        alice=alice,
        bob=bob,
        carol=carol,
        dave=dave,
        p_admin=principal_for(admin),
        p_advisor_a=principal_for(advisor_a),
        p_advisor_b=principal_for(advisor_b),
        p_alice=principal_for(alice),
        p_bob=principal_for(bob),
        p_carol=principal_for(carol),
        p_dave=principal_for(dave),
    )
