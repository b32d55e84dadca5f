"""
User Service — admin CRUD, role assignment, profile provisioning.

Deleting a user deactivates the account and revokes its sessions; rows
stay in place because achievements keep pointing at them (verified_by).
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.academic import Lecturer, Student
from app.models.auth import Role, User
from app.services.jwt_service import revoke_all_user_sessions
from app.services.principal import RoleKind, role_kind_for
from app.utils.crypto import hash_password
from app.utils.helpers import Page, normalize_pagination

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3


def _normalize_email(email):
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})


def _get_role(role_id=None, role_name=None) -> Role:
    role = None
    if role_id:
        role = db.session.get(Role, role_id)
    elif role_name:
        role = Role.query.filter(db.func.lower(Role.name) == role_name.strip().lower()).first()
    if role is None:
        raise NotFoundError(resource="Role", resource_id=role_id or role_name)
    return role


class UserService:
    """Admin-facing user management."""

    def __init__(self, directory, password_rounds=None):
        self.directory = directory
        self.password_rounds = password_rounds

    def _hash(self, password):
        if self.password_rounds:
            return hash_password(password, rounds=self.password_rounds)
        return hash_password(password)

    # ═══════════════════════════════════════════════════════════════
    # Queries
    # ═══════════════════════════════════════════════════════════════

    def list_users(self, page=1, limit=10, role_name=None, search=None) -> Page:
        page, limit = normalize_pagination(page, limit)
        query = User.query
        if role_name:
            query = query.join(Role).filter(db.func.lower(Role.name) == role_name.lower())
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(
                User.username.ilike(like), User.email.ilike(like), User.full_name.ilike(like),
            ))
        total = query.count()
        items = (
            query.order_by(User.created_at.desc(), User.id.asc())
            .limit(limit).offset((page - 1) * limit).all()
        )
        return Page(items=items, total=total, page=page, limit=limit)

    def get_user(self, user_id) -> User:
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="User", resource_id=user_id)
        return user

    # ═══════════════════════════════════════════════════════════════
    # Mutations
    # ═══════════════════════════════════════════════════════════════

    def create_user(self, data: dict) -> User:
        """Create a user, optionally with a student or lecturer profile.

        ``data`` keys: username, email, password, full_name, role_id | role,
        is_active, and either ``student`` {student_number, program_study,
        academic_year, advisor_id} or ``lecturer`` {lecturer_number,
        department} matching the role.
        """
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        full_name = (data.get("full_name") or "").strip()
        errors = {}
        if len(username) < MIN_USERNAME_LENGTH:
            errors["username"] = f"must be at least {MIN_USERNAME_LENGTH} characters"
        if len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"must be at least {MIN_PASSWORD_LENGTH} characters"
        if len(full_name) < 2:
            errors["full_name"] = "is required"
        if errors:
            raise ValidationError("Invalid user data", details=errors)
        email = _normalize_email(data.get("email"))
        role = _get_role(data.get("role_id"), data.get("role"))

        self._ensure_unique(username=username, email=email)
        self._check_profile(role, data)

        user = User(
            username=username,
            email=email,
            password_hash=self._hash(password),
            full_name=full_name,
            role_id=role.id,
            is_active=bool(data.get("is_active", True)),
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("User", "username", username) from exc

        self._provision_profile(user, role, data)
        logger.info("User %s created with role %s", user.username, role.name)
        return user

    def update_user(self, user_id, data: dict) -> User:
        user = self.get_user(user_id)
        if "username" in data and data["username"] != user.username:
            username = (data["username"] or "").strip()
            if len(username) < MIN_USERNAME_LENGTH:
                raise ValidationError("Invalid user data", details={"username": "too short"})
            self._ensure_unique(username=username)
            user.username = username
        if "email" in data and data["email"] != user.email:
            email = _normalize_email(data["email"])
            self._ensure_unique(email=email)
            user.email = email
        if data.get("full_name"):
            user.full_name = data["full_name"].strip()
        if "is_active" in data:
            user.is_active = bool(data["is_active"])
        if data.get("password"):
            if len(data["password"]) < MIN_PASSWORD_LENGTH:
                raise ValidationError("Invalid user data", details={"password": "too short"})
            user.password_hash = self._hash(data["password"])
        db.session.commit()
        logger.info("User %s updated", user.id)
        return user

    def update_user_role(self, user_id, role_id=None, role_name=None) -> User:
        user = self.get_user(user_id)
        role = _get_role(role_id, role_name)
        user.role_id = role.id
        db.session.commit()
        logger.info("User %s role changed to %s", user.id, role.name)
        return user

    def delete_user(self, user_id) -> User:
        user = self.get_user(user_id)
        user.is_active = False
        db.session.commit()
        revoke_all_user_sessions(user.id)
        logger.info("User %s deactivated", user.id)
        return user

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _ensure_unique(username=None, email=None):
        if username and User.query.filter_by(username=username).first():
            raise ConflictError("User", "username", username)
        if email and User.query.filter_by(email=email).first():
            raise ConflictError("User", "email", email)

    def _check_profile(self, role, data):
        """Reject a profile payload before the user row is written."""
        kind = role_kind_for(role.name)
        if kind is RoleKind.STUDENT and data.get("student"):
            profile = data["student"]
            number = profile.get("student_number")
            if not number:
                raise ValidationError("student_number is required", details={"student_number": "required"})
            if Student.query.filter_by(student_number=number).first():
                raise ConflictError("Student", "student_number", number)
            if profile.get("advisor_id"):
                self.directory.get_lecturer(profile["advisor_id"])
        elif kind is RoleKind.ADVISOR and data.get("lecturer"):
            number = data["lecturer"].get("lecturer_number")
            if not number:
                raise ValidationError("lecturer_number is required", details={"lecturer_number": "required"})
            if Lecturer.query.filter_by(lecturer_number=number).first():
                raise ConflictError("Lecturer", "lecturer_number", number)

    def _provision_profile(self, user, role, data):
        kind = role_kind_for(role.name)
        if kind is RoleKind.STUDENT and data.get("student"):
            profile = data["student"]
            self.directory.add_student(
                user.id,
                profile["student_number"],
                program_study=profile.get("program_study"),
                academic_year=profile.get("academic_year"),
                advisor_id=profile.get("advisor_id"),
            )
        elif kind is RoleKind.ADVISOR and data.get("lecturer"):
            profile = data["lecturer"]
            self.directory.add_lecturer(
                user.id, profile["lecturer_number"], department=profile.get("department"),
            )
