"""
Lecturer Service — scoped access to lecturer profiles and their advisees.

Visibility of the lecturer list:
    advisor → their own profile
    student → their advisor (empty when none is assigned)
    admin   → every lecturer
"""

import logging

from app.core.exceptions import AccessDeniedError
from app.services.principal import Principal, RoleKind
from app.services.scope_resolver import resolve_scope
from app.utils.helpers import Page

logger = logging.getLogger(__name__)


class LecturerService:

    def __init__(self, directory):
        self.directory = directory

    def list_lecturers(self, principal: Principal, page: int = 1, limit: int = 10) -> Page:
        kind = principal.role_kind
        if kind is RoleKind.ADMIN:
            return self.directory.list_lecturers(None, page=page, limit=limit)

        scope = resolve_scope(principal, self.directory)
        if kind is RoleKind.ADVISOR:
            return self.directory.list_lecturers([scope.lecturer_id], page=page, limit=limit)

        student = self.directory.get_student(scope.student_id)
        return self.directory.list_lecturers([student.advisor_id], page=page, limit=limit)

    def list_advisees(self, lecturer_id: str, principal: Principal, page: int = 1, limit: int = 10) -> Page:
        self.directory.get_lecturer(lecturer_id)
        kind = principal.role_kind

        if kind is not RoleKind.ADMIN:
            scope = resolve_scope(principal, self.directory)
            if kind is RoleKind.ADVISOR:
                allowed = scope.lecturer_id == lecturer_id
            else:
                student = self.directory.get_student(scope.student_id)
                allowed = student.advisor_id == lecturer_id
            if not allowed:
                logger.warning("User %s denied advisees of lecturer %s", principal.user_id, lecturer_id)
                raise AccessDeniedError("You do not have access to this lecturer's advisees")

        return self.directory.list_advisees(lecturer_id, page=page, limit=limit)
