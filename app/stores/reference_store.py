"""
Achievement Reference Store — relational workflow rows.

Every status change goes through ``update_reference_status`` which issues a
single conditional UPDATE:

    UPDATE achievement_references
       SET status = :new, ...
     WHERE id = :id AND status IN (:expected)

Zero affected rows means another request moved the record first; the
caller gets InvalidStateError and nothing is written.

Database failures are rolled back and surfaced as DependencyError so the
lifecycle engine never sees driver exceptions.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import ConflictError, DependencyError, InvalidStateError, NotFoundError
from app.models import db
from app.models.achievement import STATUS_DELETED, STATUS_VERIFIED, AchievementReference
from app.utils.helpers import Page, normalize_pagination

logger = logging.getLogger(__name__)

_STORE = "reference_store"


class ReferenceStore:
    """SQLAlchemy-backed store for AchievementReference rows."""

    # ── Writes ────────────────────────────────────────────────────────────

    def insert_reference(self, reference: AchievementReference) -> AchievementReference:
        try:
            db.session.add(reference)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Duplicate achievement reference %s: %s", reference.id, exc.orig)
            raise ConflictError("AchievementReference", "id", reference.id) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("insert_reference failed for %s", reference.id)
            raise DependencyError(_STORE, "insert_reference", exc) from exc
        return reference

    def update_reference_status(
        self,
        ref_id: str,
        new_status: str,
        *,
        expected: tuple[str, ...],
        **fields,
    ) -> AchievementReference:
        """Move ``ref_id`` to ``new_status`` only if it is still in ``expected``.

        ``fields`` are additional columns written in the same statement
        (submitted_at, verified_by, rejection_note, updated_at, ...).
        """
        values = {"status": new_status, **fields}
        stmt = (
            update(AchievementReference)
            .where(
                AchievementReference.id == ref_id,
                AchievementReference.status.in_(expected),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
            affected = result.rowcount
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("update_reference_status failed for %s → %s", ref_id, new_status)
            raise DependencyError(_STORE, "update_reference_status", exc) from exc

        if affected == 0:
            current = self.get_reference(ref_id)
            logger.info(
                "Conditional update lost: %s is '%s', expected one of %s",
                ref_id, current.status, expected,
            )
            raise InvalidStateError(
                new_status, current=current.status,
                reason=f"expected status in {list(expected)}",
            )

        return self.get_reference(ref_id)

    # ── Reads ─────────────────────────────────────────────────────────────

    def find_reference(self, ref_id: str) -> AchievementReference | None:
        """Return the row (deleted rows included) or None."""
        try:
            db.session.expire_all()
            return db.session.get(AchievementReference, ref_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DependencyError(_STORE, "find_reference", exc) from exc

    def get_reference(self, ref_id: str) -> AchievementReference:
        """Return the row (deleted rows included) or raise NotFoundError."""
        reference = self.find_reference(ref_id)
        if reference is None:
            raise NotFoundError(resource="Achievement", resource_id=ref_id)
        return reference

    def find_references_by_student_ids(
        self,
        student_ids,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page:
        student_ids = list(student_ids)
        page, limit = normalize_pagination(page, limit)
        if not student_ids:
            return Page(items=[], total=0, page=page, limit=limit)
        query = AchievementReference.query.filter(
            AchievementReference.student_id.in_(student_ids)
        )
        return self._paginate(query, status, page, limit)

    def find_all_references(self, status: str | None = None, page: int = 1, limit: int = 10) -> Page:
        page, limit = normalize_pagination(page, limit)
        return self._paginate(AchievementReference.query, status, page, limit)

    def find_verified_references(self, student_ids=None, since=None) -> list[AchievementReference]:
        """All verified rows, optionally limited to some students / a creation cutoff."""
        query = AchievementReference.query.filter(AchievementReference.status == STATUS_VERIFIED)
        if student_ids is not None:
            student_ids = list(student_ids)
            if not student_ids:
                return []
            query = query.filter(AchievementReference.student_id.in_(student_ids))
        if since is not None:
            query = query.filter(AchievementReference.created_at >= since)
        try:
            return query.order_by(AchievementReference.created_at.desc()).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DependencyError(_STORE, "find_verified_references", exc) from exc

    def _paginate(self, query, status, page, limit) -> Page:
        query = query.filter(AchievementReference.status != STATUS_DELETED)
        if status:
            query = query.filter(AchievementReference.status == status)
        try:
            total = query.count()
            items = (
                query.order_by(
                    AchievementReference.created_at.desc(),
                    AchievementReference.id.desc(),
                )
                .limit(limit)
                .offset((page - 1) * limit)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DependencyError(_STORE, "find_references", exc) from exc
        return Page(items=items, total=total, page=page, limit=limit)
