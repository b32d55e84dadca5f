"""
Academic profile models.

Models:
    - Lecturer: 1:1 profile for users acting as advisors
    - Student: 1:1 profile for users submitting achievements (0..1 advisor)
"""

import uuid
from datetime import datetime, timezone

from app.models import db


class Lecturer(db.Model):
    __tablename__ = "lecturers"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    lecturer_number = db.Column(db.String(30), unique=True, nullable=False)
    department = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = db.relationship("User")
    advisees = db.relationship("Student", back_populates="advisor", lazy="dynamic")

    def to_dict(self, include_user=True):
        d = {
            "id": self.id,
            "user_id": self.user_id,
            "lecturer_number": self.lecturer_number,
            "department": self.department,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_user and self.user:
            d["full_name"] = self.user.full_name
            d["email"] = self.user.email
        return d


class Student(db.Model):
    __tablename__ = "students"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    student_number = db.Column(db.String(30), unique=True, nullable=False)
    program_study = db.Column(db.String(200))
    academic_year = db.Column(db.String(20))
    advisor_id = db.Column(
        db.String(36), db.ForeignKey("lecturers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    user = db.relationship("User")
    advisor = db.relationship("Lecturer", back_populates="advisees")

    def to_dict(self, include_user=True):
        d = {
            "id": self.id,
            "user_id": self.user_id,
            "student_number": self.student_number,
            "program_study": self.program_study,
            "academic_year": self.academic_year,
            "advisor_id": self.advisor_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_user and self.user:
            d["full_name"] = self.user.full_name
            d["email"] = self.user.email
        if self.advisor and self.advisor.user:
            d["advisor_name"] = self.advisor.user.full_name
        return d
