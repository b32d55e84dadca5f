"""
Auth Models — users, roles, permissions, role_permissions, sessions.

Every user carries exactly one role. Permission names follow the
"resource:action" convention (e.g. "achievement:verify").
"""

import uuid
from datetime import datetime, timezone

from app.models import db


def _uuid():
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════
# 1. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(50), unique=True, nullable=False)  # admin, advisor, student
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    role_permissions = db.relationship(
        "RolePermission", back_populates="role", lazy="dynamic", cascade="all, delete-orphan"
    )
    users = db.relationship("User", back_populates="role", lazy="dynamic")

    @property
    def permission_names(self):
        return sorted(rp.permission.name for rp in self.role_permissions.all())

    def to_dict(self, include_permissions=False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }
        if include_permissions:
            d["permissions"] = self.permission_names
        return d


# ═══════════════════════════════════════════════════════════════
# 2. PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), unique=True, nullable=False)  # e.g. "achievement:create"
    resource = db.Column(db.String(50), nullable=False)  # e.g. "achievement"
    action = db.Column(db.String(50), nullable=False)    # e.g. "create"
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    role_permissions = db.relationship("RolePermission", back_populates="permission", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "resource": self.resource,
            "action": self.action,
            "description": self.description,
        }


# ═══════════════════════════════════════════════════════════════
# 3. ROLE_PERMISSIONS (Junction table)
# ═══════════════════════════════════════════════════════════════
class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    role_id = db.Column(
        db.String(36), db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    permission_id = db.Column(
        db.String(36), db.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )

    # Relationships
    role = db.relationship("Role", back_populates="role_permissions")
    permission = db.relationship("Permission", back_populates="role_permissions")


# ═══════════════════════════════════════════════════════════════
# 4. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(200), nullable=False)
    role_id = db.Column(db.String(36), db.ForeignKey("roles.id"), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    role = db.relationship("Role", back_populates="users")
    sessions = db.relationship("Session", back_populates="user", lazy="dynamic", cascade="all, delete-orphan")

    @property
    def role_name(self):
        return self.role.name if self.role else None

    def to_dict(self, include_permissions=False):
        d = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role_id": self.role_id,
            "role": self.role_name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_permissions:
            d["permissions"] = self.role.permission_names if self.role else []
        return d


# ═══════════════════════════════════════════════════════════════
# 5. SESSIONS (Refresh tokens & login tracking)
# ═══════════════════════════════════════════════════════════════
class Session(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = db.Column(db.String(256), nullable=False)  # SHA-256 of refresh token
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    expires_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime)

    # Relationships
    user = db.relationship("User", back_populates="sessions")

    @property
    def is_expired(self):
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expires_at

    def to_dict(self):
        return {
            "id": self.id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
        }
