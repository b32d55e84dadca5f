"""initial_achievement_schema

Relational side of the achievement tracker: auth (roles, permissions,
role_permissions, users, sessions), academic profiles (lecturers,
students) and achievement_references. Achievement content lives in the
document store and has no table here.

Revision ID: 7a1c2e9d4b10
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "7a1c2e9d4b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.String(36), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "permission_id", sa.String(36), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True,
        ),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(200), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("role_id", sa.String(36), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_users_role_id", "users", ["role_id"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(256), nullable=False),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime()),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "lecturers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("lecturer_number", sa.String(30), nullable=False, unique=True),
        sa.Column("department", sa.String(200)),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("student_number", sa.String(30), nullable=False, unique=True),
        sa.Column("program_study", sa.String(200)),
        sa.Column("academic_year", sa.String(20)),
        sa.Column("advisor_id", sa.String(36), sa.ForeignKey("lecturers.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_students_advisor_id", "students", ["advisor_id"])

    op.create_table(
        "achievement_references",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "student_id", sa.String(36), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content_ref", sa.String(64), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("submitted_at", sa.DateTime()),
        sa.Column("verified_at", sa.DateTime()),
        sa.Column("verified_by", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("rejection_note", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_achievement_references_student_id", "achievement_references", ["student_id"])
    op.create_index("ix_achievement_references_status", "achievement_references", ["status"])
    op.create_index("ix_achievement_refs_student_status", "achievement_references", ["student_id", "status"])
    op.create_index("ix_achievement_refs_created", "achievement_references", ["created_at"])


def downgrade():
    op.drop_table("achievement_references")
    op.drop_table("students")
    op.drop_table("lecturers")
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("role_permissions")
    op.drop_table("permissions")
    op.drop_table("roles")
