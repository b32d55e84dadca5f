"""
Person Directory — students, lecturers and the advisor relation.

Read access for scope resolution and reporting, plus the two writes the
admin surface needs (profile provisioning and advisor reassignment).
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import ConflictError, DependencyError, NotFoundError
from app.models import db
from app.models.academic import Lecturer, Student
from app.utils.helpers import Page, normalize_pagination

logger = logging.getLogger(__name__)

_STORE = "person_directory"


class PersonDirectory:
    """SQLAlchemy-backed directory of student and lecturer profiles."""

    # ── Lookups used by scope resolution ──────────────────────────────────

    def find_student_by_user_id(self, user_id: str) -> Student | None:
        return Student.query.filter_by(user_id=user_id).first()

    def find_lecturer_by_user_id(self, user_id: str) -> Lecturer | None:
        return Lecturer.query.filter_by(user_id=user_id).first()

    def find_advisee_student_ids(self, lecturer_id: str) -> list[str]:
        rows = db.session.query(Student.id).filter(Student.advisor_id == lecturer_id).all()
        return [row[0] for row in rows]

    # ── Entity access ─────────────────────────────────────────────────────

    def get_student(self, student_id: str) -> Student:
        student = db.session.get(Student, student_id)
        if student is None:
            raise NotFoundError(resource="Student", resource_id=student_id)
        return student

    def get_lecturer(self, lecturer_id: str) -> Lecturer:
        lecturer = db.session.get(Lecturer, lecturer_id)
        if lecturer is None:
            raise NotFoundError(resource="Lecturer", resource_id=lecturer_id)
        return lecturer

    def get_students(self, student_ids) -> dict[str, Student]:
        student_ids = list(set(student_ids))
        if not student_ids:
            return {}
        return {s.id: s for s in Student.query.filter(Student.id.in_(student_ids)).all()}

    # ── Listings ──────────────────────────────────────────────────────────

    def list_students(self, student_ids=None, page: int = 1, limit: int = 10) -> Page:
        """Students ordered by student number; ``student_ids=None`` means everyone."""
        page, limit = normalize_pagination(page, limit)
        query = Student.query
        if student_ids is not None:
            student_ids = list(student_ids)
            if not student_ids:
                return Page(items=[], total=0, page=page, limit=limit)
            query = query.filter(Student.id.in_(student_ids))
        return self._paginate(query.order_by(Student.student_number.asc()), page, limit)

    def list_advisees(self, lecturer_id: str, page: int = 1, limit: int = 10) -> Page:
        page, limit = normalize_pagination(page, limit)
        query = Student.query.filter(Student.advisor_id == lecturer_id).order_by(
            Student.student_number.asc()
        )
        return self._paginate(query, page, limit)

    def list_lecturers(self, lecturer_ids=None, page: int = 1, limit: int = 10) -> Page:
        page, limit = normalize_pagination(page, limit)
        query = Lecturer.query
        if lecturer_ids is not None:
            lecturer_ids = [lid for lid in lecturer_ids if lid]
            if not lecturer_ids:
                return Page(items=[], total=0, page=page, limit=limit)
            query = query.filter(Lecturer.id.in_(lecturer_ids))
        return self._paginate(query.order_by(Lecturer.lecturer_number.asc()), page, limit)

    @staticmethod
    def _paginate(query, page, limit) -> Page:
        total = query.count()
        items = query.limit(limit).offset((page - 1) * limit).all()
        return Page(items=items, total=total, page=page, limit=limit)

    # ── Writes ────────────────────────────────────────────────────────────

    def update_student_advisor(self, student_id: str, lecturer_id: str | None) -> Student:
        student = self.get_student(student_id)
        if lecturer_id is not None:
            self.get_lecturer(lecturer_id)
        student.advisor_id = lecturer_id
        self._commit("update_student_advisor")
        logger.info("Student %s advisor set to %s", student_id, lecturer_id)
        return student

    def add_student(self, user_id: str, student_number: str, *, program_study=None,
                    academic_year=None, advisor_id=None) -> Student:
        if Student.query.filter_by(student_number=student_number).first():
            raise ConflictError("Student", "student_number", student_number)
        if advisor_id is not None:
            self.get_lecturer(advisor_id)
        student = Student(
            user_id=user_id,
            student_number=student_number,
            program_study=program_study,
            academic_year=academic_year,
            advisor_id=advisor_id,
        )
        db.session.add(student)
        self._commit("add_student")
        return student

    def add_lecturer(self, user_id: str, lecturer_number: str, *, department=None) -> Lecturer:
        if Lecturer.query.filter_by(lecturer_number=lecturer_number).first():
            raise ConflictError("Lecturer", "lecturer_number", lecturer_number)
        lecturer = Lecturer(user_id=user_id, lecturer_number=lecturer_number, department=department)
        db.session.add(lecturer)
        self._commit("add_lecturer")
        return lecturer

    @staticmethod
    def _commit(operation):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("%s violated a constraint: %s", operation, exc.orig)
            raise ConflictError("Profile", "user_id") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("%s failed", operation)
            raise DependencyError(_STORE, operation, exc) from exc
