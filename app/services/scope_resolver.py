"""
Role-Scope Resolver — which students a principal may see.

    STUDENT  → OWN       (their own student id)
    ADVISOR  → ADVISEES  (every student whose advisor is them)
    ADMIN    → ALL
    UNKNOWN  → AccessDeniedError

A Student without a student profile, or an Advisor without a lecturer
profile, is denied as well. The same Scope object backs list queries
(``student_ids``) and single-entity checks (``allows``).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from app.core.exceptions import AccessDeniedError
from app.services.principal import Principal, RoleKind

logger = logging.getLogger(__name__)


class ScopeKind(enum.Enum):
    OWN = "own"
    ADVISEES = "advisees"
    ALL = "all"


@dataclass(frozen=True)
class Scope:
    kind: ScopeKind
    student_ids: tuple[str, ...] = ()
    student_id: str | None = None   # set for OWN
    lecturer_id: str | None = None  # set for ADVISEES

    @property
    def is_global(self) -> bool:
        return self.kind is ScopeKind.ALL

    def allows(self, student_id: str) -> bool:
        return self.is_global or student_id in self.student_ids


def resolve_scope(principal: Principal, directory) -> Scope:
    """Resolve ``principal`` into a Scope using the person directory."""
    kind = principal.role_kind

    if kind is RoleKind.ADMIN:
        return Scope(kind=ScopeKind.ALL)

    if kind is RoleKind.STUDENT:
        student = directory.find_student_by_user_id(principal.user_id)
        if student is None:
            logger.warning("User %s has student role but no student profile", principal.user_id)
            raise AccessDeniedError("Student profile not found for this user")
        return Scope(kind=ScopeKind.OWN, student_ids=(student.id,), student_id=student.id)

    if kind is RoleKind.ADVISOR:
        lecturer = directory.find_lecturer_by_user_id(principal.user_id)
        if lecturer is None:
            logger.warning("User %s has advisor role but no lecturer profile", principal.user_id)
            raise AccessDeniedError("Lecturer profile not found for this user")
        advisee_ids = tuple(directory.find_advisee_student_ids(lecturer.id))
        return Scope(kind=ScopeKind.ADVISEES, student_ids=advisee_ids, lecturer_id=lecturer.id)

    logger.warning("User %s has unrecognised role %r", principal.user_id, principal.role_name)
    raise AccessDeniedError(f"Role {principal.role_name!r} has no access scope")


def ensure_student_in_scope(principal: Principal, directory, student_id: str) -> Scope:
    """Per-entity check: raise AccessDeniedError unless ``student_id`` is in scope."""
    scope = resolve_scope(principal, directory)
    if not scope.allows(student_id):
        logger.warning("User %s denied access to student %s", principal.user_id, student_id)
        raise AccessDeniedError("You do not have access to this student")
    return scope
