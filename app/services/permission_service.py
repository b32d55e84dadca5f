"""
Permission Service — role/permission catalog and lookups.

Permission names follow "resource:action". Admins bypass permission
checks entirely (see Principal.has_permission); the catalog below is
what every other role is granted by ``seed_default_roles``.
"""

import logging

from app.models import db
from app.models.auth import Permission, Role, RolePermission

logger = logging.getLogger(__name__)

PERMISSIONS = {
    "achievement:read": "View achievements in scope",
    "achievement:create": "Create own achievements",
    "achievement:update": "Edit, submit and attach files to own achievements",
    "achievement:delete": "Delete own draft achievements",
    "achievement:verify": "Verify or reject advisee achievements",
    "student:read": "View student profiles in scope",
    "student:manage": "Reassign student advisors",
    "lecturer:read": "View lecturer profiles in scope",
    "report:read": "View achievement statistics",
    "user:manage": "Manage user accounts and roles",
}

DEFAULT_ROLES = {
    "admin": {
        "description": "Administrator — full access",
        "permissions": sorted(PERMISSIONS),
    },
    "advisor": {
        "description": "Lecturer acting as academic advisor",
        "permissions": [
            "achievement:read",
            "achievement:verify",
            "student:read",
            "lecturer:read",
            "report:read",
        ],
    },
    "student": {
        "description": "Student submitting achievements",
        "permissions": [
            "achievement:read",
            "achievement:create",
            "achievement:update",
            "achievement:delete",
            "student:read",
            "lecturer:read",
            "report:read",
        ],
    },
}


def get_role_permission_names(role: Role | None) -> list[str]:
    if role is None:
        return []
    return role.permission_names


def seed_default_roles() -> dict:
    """Create missing permissions, roles and grants. Idempotent.

    Returns counts of newly created rows; the caller commits.
    """
    created = {"permissions": 0, "roles": 0, "grants": 0}

    by_name = {p.name: p for p in Permission.query.all()}
    for name, description in PERMISSIONS.items():
        if name in by_name:
            continue
        resource, action = name.split(":", 1)
        perm = Permission(name=name, resource=resource, action=action, description=description)
        db.session.add(perm)
        by_name[name] = perm
        created["permissions"] += 1
    db.session.flush()

    for role_name, spec in DEFAULT_ROLES.items():
        role = Role.query.filter_by(name=role_name).first()
        if role is None:
            role = Role(name=role_name, description=spec["description"])
            db.session.add(role)
            db.session.flush()
            created["roles"] += 1
        granted = {rp.permission_id for rp in role.role_permissions.all()}
        for perm_name in spec["permissions"]:
            perm = by_name[perm_name]
            if perm.id not in granted:
                db.session.add(RolePermission(role_id=role.id, permission_id=perm.id))
                created["grants"] += 1

    logger.info(
        "Seeded roles: %d permissions, %d roles, %d grants",
        created["permissions"], created["roles"], created["grants"],
    )
    return created
