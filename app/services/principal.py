"""Authenticated principal carried through a request."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class RoleKind(enum.Enum):
    STUDENT = "student"
    ADVISOR = "advisor"
    ADMIN = "admin"
    UNKNOWN = "unknown"


# Role name (as stored on roles.name) → RoleKind
_ROLE_NAME_MAP = {
    "student": RoleKind.STUDENT,
    "mahasiswa": RoleKind.STUDENT,
    "advisor": RoleKind.ADVISOR,
    "lecturer": RoleKind.ADVISOR,
    "dosen wali": RoleKind.ADVISOR,
    "admin": RoleKind.ADMIN,
}


def role_kind_for(role_name: str | None) -> RoleKind:
    """Map a stored role name onto a RoleKind; unrecognised names are UNKNOWN."""
    if not role_name:
        return RoleKind.UNKNOWN
    return _ROLE_NAME_MAP.get(role_name.strip().lower(), RoleKind.UNKNOWN)


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of one request. Never persisted."""

    user_id: str
    role_name: str | None
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def role_kind(self) -> RoleKind:
        return role_kind_for(self.role_name)

    @property
    def is_admin(self) -> bool:
        return self.role_kind is RoleKind.ADMIN

    def has_permission(self, name: str) -> bool:
        return self.is_admin or name in self.permissions

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role_name,
            "permissions": sorted(self.permissions),
        }
