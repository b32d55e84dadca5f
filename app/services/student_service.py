"""
Student Service — scoped access to student profiles.

    list_students           student: self, advisor: advisees, admin: everyone
    get_own_profile         the caller's student profile
    get_student             single profile with the per-entity scope check
    update_student_advisor  admin only
"""

import logging

from app.core.exceptions import AccessDeniedError, NotFoundError
from app.services.principal import Principal
from app.services.scope_resolver import ensure_student_in_scope, resolve_scope
from app.utils.helpers import Page

logger = logging.getLogger(__name__)


class StudentService:

    def __init__(self, directory):
        self.directory = directory

    def list_students(self, principal: Principal, page: int = 1, limit: int = 10) -> Page:
        scope = resolve_scope(principal, self.directory)
        student_ids = None if scope.is_global else scope.student_ids
        return self.directory.list_students(student_ids, page=page, limit=limit)

    def get_own_profile(self, principal: Principal):
        student = self.directory.find_student_by_user_id(principal.user_id)
        if student is None:
            raise NotFoundError(resource="Student profile", resource_id=principal.user_id)
        return student

    def get_student(self, student_id: str, principal: Principal):
        student = self.directory.get_student(student_id)
        ensure_student_in_scope(principal, self.directory, student_id)
        return student

    def update_student_advisor(self, student_id: str, lecturer_id: str | None, principal: Principal):
        if not principal.is_admin:
            logger.warning("User %s tried to reassign advisor of %s", principal.user_id, student_id)
            raise AccessDeniedError("Only admins can change a student's advisor")
        return self.directory.update_student_advisor(student_id, lecturer_id)
