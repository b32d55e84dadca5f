"""
Achievement Lifecycle Service

Moves an achievement through its workflow while keeping the relational
reference row and the content document paired:

    create   (none)            → draft
    submit   draft | rejected  → submitted   (owning student)
    verify   submitted         → verified    (advisor of the owner, admin)
    reject   submitted         → rejected    (advisor of the owner, admin)
    delete   draft             → deleted     (owning student)

Write ordering:
  - create writes the content document first, then the reference row. A
    failure in between leaves an unreachable content document (logged),
    never a reference pointing at nothing. The content id is derived from
    the reference id; when the caller passes an idempotency key the
    reference id is derived from it too, so a retry hits the same keys
    instead of writing a second document.
  - update writes the content document, then bumps the reference row with
    a conditional UPDATE on the status it was loaded in. If a concurrent
    submit won, the previous content fields are written back and the
    caller gets InvalidStateError.
  - every transition is one conditional UPDATE on the reference row
    (authoritative). History entries and notifications are then appended
    to the content document best-effort: failures are logged and returned
    as warnings on the TransitionResult, never raised.

Check order for every operation: load (NotFoundError) → authorize
(AccessDeniedError) → current status (InvalidStateError) → input
(ValidationError).

Usage:
    lifecycle = get_services().lifecycle
    ref = lifecycle.create(principal, {"title": "National Robotics Contest"})
    result = lifecycle.submit(ref.id, principal)
    if result.outcome is Outcome.COMMITTED_WITH_WARNINGS:
        ...
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from app.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    DependencyError,
    InvalidStateError,
    NotAStudentError,
    NotFoundError,
    ValidationError,
)
from app.models.achievement import (
    ACHIEVEMENT_TRANSITIONS,
    EDITABLE_STATUSES,
    STATUS_DELETED,
    STATUS_DRAFT,
    STATUS_REJECTED,
    STATUS_SUBMITTED,
    STATUS_VERIFIED,
    AchievementReference,
)
from app.services.principal import Principal, RoleKind
from app.services.scope_resolver import ensure_student_in_scope, resolve_scope
from app.utils.helpers import Page, isoformat, utcnow

logger = logging.getLogger(__name__)

# Namespace for deriving content ids from reference ids
CONTENT_ID_NAMESPACE = uuid.UUID("6f0c61d2-8c55-4c4f-9a7e-2f7d0e3b9a41")
# Namespace for deriving reference ids from idempotency keys
REFERENCE_ID_NAMESPACE = uuid.UUID("b3e5a7c4-1d2f-4e8a-9c6b-5f4d3a2e1c07")

DEFAULT_ACHIEVEMENT_TYPE = "other"
ACHIEVEMENT_TYPES = {
    "academic",
    "competition",
    "organization",
    "publication",
    "certification",
    "other",
}

HISTORY_NOTES = {
    STATUS_DRAFT: "created",
    STATUS_SUBMITTED: "submitted for verification",
    STATUS_VERIFIED: "verified",
    STATUS_DELETED: "deleted by student",
}

DEFAULT_NOTIFICATION_TITLE = "Your achievement"


class Outcome(enum.Enum):
    COMMITTED = "committed"
    COMMITTED_WITH_WARNINGS = "committed_with_warnings"


@dataclass
class TransitionResult:
    """Authoritative outcome of a transition plus any degraded side-writes."""

    reference: AchievementReference
    warnings: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> Outcome:
        return Outcome.COMMITTED_WITH_WARNINGS if self.warnings else Outcome.COMMITTED

    def to_dict(self):
        return {
            "achievement": self.reference.to_dict(),
            "outcome": self.outcome.value,
            "warnings": list(self.warnings),
        }


@dataclass
class AchievementDetail:
    reference: AchievementReference
    content: dict
    student: object | None = None

    def to_dict(self):
        d = self.reference.to_dict()
        d["content"] = serialize_content(self.content)
        if self.student is not None:
            d["student"] = self.student.to_dict()
        return d


def content_id_for(reference_id: str) -> str:
    """Deterministic content id for a reference id."""
    return str(uuid.uuid5(CONTENT_ID_NAMESPACE, reference_id))


def reference_id_for(student_id: str, idempotency_key: str) -> str:
    """Reference id for a client-supplied idempotency key, scoped per student."""
    return str(uuid.uuid5(REFERENCE_ID_NAMESPACE, f"{student_id}:{idempotency_key}"))


def _serialize(value):
    if isinstance(value, datetime):
        return isoformat(value)
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


def serialize_content(document: dict | None) -> dict | None:
    """JSON-ready copy of a content document (``_id`` exposed as ``id``)."""
    if document is None:
        return None
    out = _serialize({k: v for k, v in document.items() if k != "_id"})
    out["id"] = document.get("_id")
    return out


def validate_content(payload: dict | None) -> dict:
    """Validate an achievement body and return its normalized editable fields."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(
            "Invalid achievement content",
            details={"body": f"expected object, got {type(payload).__name__}"},
        )
    errors = {}

    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        errors["title"] = "title is required"

    achievement_type = payload.get("achievement_type") or payload.get("type") or DEFAULT_ACHIEVEMENT_TYPE
    if not isinstance(achievement_type, str) or achievement_type.strip().lower() not in ACHIEVEMENT_TYPES:
        errors["achievement_type"] = f"achievement_type must be one of {sorted(ACHIEVEMENT_TYPES)}"

    description = payload.get("description") or ""
    if not isinstance(description, str):
        errors["description"] = "description must be a string"

    details = payload.get("details") or {}
    if not isinstance(details, dict):
        errors["details"] = "details must be an object"

    tags = payload.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        errors["tags"] = "tags must be a list of strings"

    points = payload.get("points", 0)
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        errors["points"] = "points must be a non-negative integer"

    level = payload.get("level")
    if level is not None and not isinstance(level, str):
        errors["level"] = "level must be a string"

    if errors:
        raise ValidationError("Invalid achievement content", details=errors)

    return {
        "achievement_type": achievement_type.strip().lower(),
        "title": title.strip(),
        "description": description,
        "details": details,
        "tags": [t.strip() for t in tags if t.strip()],
        "points": points,
        "level": level.strip().lower() if level and level.strip() else None,
    }


class AchievementLifecycle:
    """Workflow engine over the reference store and the content store.

    Collaborators are injected; the engine holds no state of its own.
    """

    def __init__(self, references, contents, directory, blobs=None, clock=utcnow):
        self.references = references
        self.contents = contents
        self.directory = directory
        self.blobs = blobs
        self.clock = clock

    # ── Create / update ───────────────────────────────────────────────────

    def create(
        self,
        actor: Principal,
        payload: dict,
        idempotency_key: str | None = None,
    ) -> AchievementReference:
        """Create a draft achievement for the acting student.

        With ``idempotency_key`` the reference id is derived from the
        student and the key, so a retry returns the reference of the first
        successful call, and a retry after a failed reference insert reuses
        the content document already written.
        """
        student = self.directory.find_student_by_user_id(actor.user_id)
        if student is None:
            raise NotAStudentError(actor.user_id)
        fields = validate_content(payload)

        if idempotency_key:
            reference_id = reference_id_for(student.id, idempotency_key)
            existing = self.references.find_reference(reference_id)
            if existing is not None:
                logger.info(
                    "Replayed create for %s (idempotency key reused)", reference_id,
                    extra={"achievement_id": reference_id},
                )
                return existing
        else:
            reference_id = str(uuid.uuid4())

        now = self.clock()
        content_id = content_id_for(reference_id)
        document = {
            "_id": content_id,
            "reference_id": reference_id,
            "student_id": student.id,
            **fields,
            "attachments": [],
            "status_history": [
                self._history_entry(STATUS_DRAFT, actor.user_id, now, HISTORY_NOTES[STATUS_DRAFT])
            ],
            "notifications": [],
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        self.contents.insert_content(document)

        reference = AchievementReference(
            id=reference_id,
            student_id=student.id,
            content_ref=content_id,
            status=STATUS_DRAFT,
            created_at=now,
            updated_at=now,
        )
        try:
            self.references.insert_reference(reference)
        except ConflictError:
            if not idempotency_key:
                raise
            # A concurrent call with the same key inserted the row first
            return self.references.get_reference(reference_id)
        except Exception:
            logger.warning(
                "Reference insert failed; content %s left without a reference",
                content_id, extra={"achievement_id": reference_id},
            )
            raise

        logger.info(
            "Achievement %s created by student %s", reference_id, student.id,
            extra={"achievement_id": reference_id, "user_id": actor.user_id},
        )
        return reference

    def update(self, ref_id: str, payload: dict, actor: Principal) -> AchievementDetail:
        reference = self.references.get_reference(ref_id)
        student = self._require_owner(reference, actor, "update")
        if reference.status not in EDITABLE_STATUSES:
            raise InvalidStateError("update", current=reference.status)
        fields = validate_content(payload)

        loaded_status = reference.status
        previous = self.contents.find_content_by_id(reference.content_ref)
        self.contents.update_content(reference.content_ref, fields)
        try:
            reference = self.references.update_reference_status(
                ref_id, loaded_status, expected=(loaded_status,), updated_at=self.clock(),
            )
        except InvalidStateError:
            if previous is not None:
                logger.warning(
                    "Achievement %s left %s during update; restoring content",
                    ref_id, loaded_status, extra={"achievement_id": ref_id},
                )
                self.contents.update_content(
                    reference.content_ref, {k: previous.get(k) for k in fields},
                )
            raise

        logger.info("Achievement %s content updated", ref_id, extra={"achievement_id": ref_id})
        return AchievementDetail(
            reference=reference,
            content=self.contents.find_content_by_id(reference.content_ref),
            student=student,
        )

    # ── Transitions ───────────────────────────────────────────────────────

    def submit(self, ref_id: str, actor: Principal) -> TransitionResult:
        reference = self.references.get_reference(ref_id)
        self._require_owner(reference, actor, "submit")
        self._check_transition(reference, "submit")

        now = self.clock()
        updated = self._transition(
            reference, "submit",
            submitted_at=now,
            verified_at=None,
            verified_by=None,
            updated_at=now,
        )
        warnings = []
        self._advisory(
            "append_history", warnings,
            self.contents.append_history, updated.content_ref,
            self._history_entry(STATUS_SUBMITTED, actor.user_id, now, HISTORY_NOTES[STATUS_SUBMITTED]),
        )
        return TransitionResult(updated, warnings)

    def verify(self, ref_id: str, actor: Principal) -> TransitionResult:
        reference = self.references.get_reference(ref_id)
        self._require_verifier(reference, actor, "verify")
        self._check_transition(reference, "verify")

        now = self.clock()
        updated = self._transition(
            reference, "verify",
            verified_at=now,
            verified_by=actor.user_id,
            rejection_note=None,
            updated_at=now,
        )
        warnings = []
        self._advisory(
            "append_history", warnings,
            self.contents.append_history, updated.content_ref,
            self._history_entry(STATUS_VERIFIED, actor.user_id, now, HISTORY_NOTES[STATUS_VERIFIED]),
        )
        title = self._notification_title(updated.content_ref, warnings)
        self._advisory(
            "append_notification", warnings,
            self.contents.append_notification, updated.content_ref,
            self._notification("achievement_verified", "Approved", f"{title} approved", now),
        )
        return TransitionResult(updated, warnings)

    def reject(self, ref_id: str, actor: Principal, note: str | None) -> TransitionResult:
        reference = self.references.get_reference(ref_id)
        self._require_verifier(reference, actor, "reject")
        self._check_transition(reference, "reject")
        if not isinstance(note, str) or not note.strip():
            raise ValidationError("Rejection note is required", details={"note": "required"})
        note = note.strip()

        now = self.clock()
        updated = self._transition(
            reference, "reject",
            rejection_note=note,
            verified_at=now,
            verified_by=actor.user_id,
            updated_at=now,
        )
        warnings = []
        self._advisory(
            "append_history", warnings,
            self.contents.append_history, updated.content_ref,
            self._history_entry(STATUS_REJECTED, actor.user_id, now, f"rejected: {note}"),
        )
        title = self._notification_title(updated.content_ref, warnings)
        self._advisory(
            "append_notification", warnings,
            self.contents.append_notification, updated.content_ref,
            self._notification("achievement_rejected", "Rejected", f"{title} rejected: {note}", now),
        )
        return TransitionResult(updated, warnings)

    def delete(self, ref_id: str, actor: Principal) -> TransitionResult:
        reference = self.references.get_reference(ref_id)
        self._require_owner(reference, actor, "delete")
        self._check_transition(reference, "delete")

        now = self.clock()
        updated = self._transition(reference, "delete", updated_at=now)
        warnings = []
        self._advisory(
            "soft_delete_content", warnings,
            self.contents.soft_delete_content, updated.content_ref, now,
        )
        self._advisory(
            "append_history", warnings,
            self.contents.append_history, updated.content_ref,
            self._history_entry(STATUS_DELETED, actor.user_id, now, HISTORY_NOTES[STATUS_DELETED]),
        )
        return TransitionResult(updated, warnings)

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_detail(self, ref_id: str, viewer: Principal | None = None) -> AchievementDetail:
        reference = self._load_live(ref_id)
        if viewer is not None:
            ensure_student_in_scope(viewer, self.directory, reference.student_id)
        content = self.contents.find_content_by_id(reference.content_ref)
        if content is None or content.get("deleted_at") is not None:
            logger.warning(
                "Reference %s points at missing content %s", ref_id, reference.content_ref,
                extra={"achievement_id": ref_id},
            )
            raise NotFoundError(resource="Achievement", resource_id=ref_id)
        student = self.directory.get_students([reference.student_id]).get(reference.student_id)
        return AchievementDetail(reference=reference, content=content, student=student)

    def get_history(self, ref_id: str, viewer: Principal | None = None) -> list[dict]:
        detail = self.get_detail(ref_id, viewer)
        return [_serialize(entry) for entry in detail.content.get("status_history", [])]

    def list_for_principal(
        self,
        principal: Principal,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page:
        scope = resolve_scope(principal, self.directory)
        if scope.is_global:
            return self.references.find_all_references(status=status, page=page, limit=limit)
        return self.references.find_references_by_student_ids(
            scope.student_ids, status=status, page=page, limit=limit,
        )

    def list_for_student(
        self,
        student_id: str,
        viewer: Principal,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page:
        self.directory.get_student(student_id)
        ensure_student_in_scope(viewer, self.directory, student_id)
        return self.references.find_references_by_student_ids(
            [student_id], status=status, page=page, limit=limit,
        )

    def summarize(self, references) -> list[dict]:
        """Reference rows joined with the headline fields of their content."""
        references = list(references)
        documents = self.contents.find_content_by_ids([r.content_ref for r in references])
        students = self.directory.get_students([r.student_id for r in references])
        items = []
        for reference in references:
            d = reference.to_dict()
            document = documents.get(reference.content_ref)
            if document is not None:
                d["title"] = document.get("title")
                d["achievement_type"] = document.get("achievement_type")
                d["points"] = document.get("points", 0)
                d["level"] = document.get("level")
            student = students.get(reference.student_id)
            if student is not None and student.user is not None:
                d["student_name"] = student.user.full_name
            items.append(d)
        return items

    # ── Attachments ───────────────────────────────────────────────────────

    def upload_attachment(
        self,
        ref_id: str,
        actor: Principal,
        data: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> dict:
        reference = self.references.get_reference(ref_id)
        self._require_owner(reference, actor, "upload_attachment")
        if reference.status == STATUS_DELETED:
            raise InvalidStateError("upload_attachment", current=reference.status)
        if not filename:
            raise ValidationError("File name is required", details={"file": "required"})
        if not data:
            raise ValidationError("File is empty", details={"file": "empty"})
        if self.blobs is None:
            raise DependencyError("blob_store", "store")

        url = self.blobs.store(data, filename, content_type)
        attachment = {
            "file_name": filename,
            "file_url": url,
            "file_type": content_type or "application/octet-stream",
            "uploaded_at": self.clock(),
        }
        try:
            self.contents.append_attachment(reference.content_ref, attachment)
        except (DependencyError, NotFoundError) as exc:
            logger.error("Attachment record failed for %s, removing blob %s", ref_id, url)
            self.blobs.delete(url)
            raise DependencyError("content_store", "append_attachment", exc) from exc

        logger.info("Attachment %s added to achievement %s", filename, ref_id,
                    extra={"achievement_id": ref_id})
        return _serialize(attachment)

    # ── Internals ─────────────────────────────────────────────────────────

    def _load_live(self, ref_id):
        reference = self.references.get_reference(ref_id)
        if reference.status == STATUS_DELETED:
            raise NotFoundError(resource="Achievement", resource_id=ref_id)
        return reference

    def _require_owner(self, reference, actor, action):
        student = self.directory.find_student_by_user_id(actor.user_id)
        if student is None or student.id != reference.student_id:
            logger.warning("User %s may not %s achievement %s", actor.user_id, action, reference.id)
            raise AccessDeniedError(f"Only the owning student can {action.replace('_', ' ')} this achievement")
        return student

    def _require_verifier(self, reference, actor, action):
        kind = actor.role_kind
        if kind is RoleKind.ADMIN:
            return
        if kind is RoleKind.ADVISOR:
            lecturer = self.directory.find_lecturer_by_user_id(actor.user_id)
            student = self.directory.get_students([reference.student_id]).get(reference.student_id)
            if lecturer is not None and student is not None and student.advisor_id == lecturer.id:
                return
        logger.warning("User %s may not %s achievement %s", actor.user_id, action, reference.id)
        raise AccessDeniedError(f"Only the student's advisor or an admin can {action} this achievement")

    @staticmethod
    def _check_transition(reference, action):
        rule = ACHIEVEMENT_TRANSITIONS[action]
        if reference.status not in rule["from"]:
            raise InvalidStateError(action, current=reference.status)

    def _transition(self, reference, action, **fields):
        rule = ACHIEVEMENT_TRANSITIONS[action]
        updated = self.references.update_reference_status(
            reference.id, rule["to"], expected=rule["from"], **fields,
        )
        logger.info(
            "Achievement %s: %s → %s", reference.id, ", ".join(rule["from"]), rule["to"],
            extra={"achievement_id": reference.id},
        )
        return updated

    def _advisory(self, operation, warnings, fn, content_id, *args):
        try:
            fn(content_id, *args)
        except (DependencyError, NotFoundError) as exc:
            logger.warning("Advisory %s failed for content %s: %s", operation, content_id, exc)
            warnings.append(f"{operation} failed: {exc}")

    def _notification_title(self, content_id, warnings):
        try:
            document = self.contents.find_content_by_id(content_id)
        except DependencyError as exc:
            logger.warning("Could not load content %s for notification: %s", content_id, exc)
            warnings.append(f"find_content_by_id failed: {exc}")
            return DEFAULT_NOTIFICATION_TITLE
        if document and document.get("title"):
            return document["title"]
        return DEFAULT_NOTIFICATION_TITLE

    @staticmethod
    def _history_entry(status, changed_by, changed_at, note):
        return {
            "id": str(uuid.uuid4()),
            "status": status,
            "changed_by": changed_by,
            "changed_at": changed_at,
            "note": note,
        }

    @staticmethod
    def _notification(kind, title, message, created_at):
        return {
            "id": str(uuid.uuid4()),
            "type": kind,
            "title": title,
            "message": message,
            "read": False,
            "created_at": created_at,
        }
