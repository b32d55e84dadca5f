"""
Achievement reference model — authoritative workflow state.

The rich achievement body lives in the document store; this row holds the
status, the timestamps of each transition and a pointer (content_ref) to
the content document.

Lifecycle:
    draft → submitted → verified
                     ↘ rejected → submitted
    draft → deleted
"""

import uuid
from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
STATUS_VERIFIED = "verified"
STATUS_REJECTED = "rejected"
STATUS_DELETED = "deleted"

ACHIEVEMENT_STATUSES = (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_VERIFIED,
    STATUS_REJECTED,
    STATUS_DELETED,
)

# operation → {"from": allowed source statuses, "to": target status}
ACHIEVEMENT_TRANSITIONS = {
    "submit": {"from": (STATUS_DRAFT, STATUS_REJECTED), "to": STATUS_SUBMITTED},
    "verify": {"from": (STATUS_SUBMITTED,), "to": STATUS_VERIFIED},
    "reject": {"from": (STATUS_SUBMITTED,), "to": STATUS_REJECTED},
    "delete": {"from": (STATUS_DRAFT,), "to": STATUS_DELETED},
}

# Statuses in which the owner may still edit the content body
EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_REJECTED)


class AchievementReference(db.Model):
    __tablename__ = "achievement_references"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = db.Column(
        db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content_ref = db.Column(db.String(64), unique=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT, index=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)
    verified_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        db.Index("ix_achievement_refs_student_status", "student_id", "status"),
        db.Index("ix_achievement_refs_created", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "content_ref": self.content_ref,
            "status": self.status,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "verified_by": self.verified_by,
            "rejection_note": self.rejection_note,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
