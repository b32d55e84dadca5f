"""
Seed Roles & Permissions — admin / advisor / student + default admin.

Usage:
    python scripts/seed_roles.py                                   # development DB
    python scripts/seed_roles.py --env production
    python scripts/seed_roles.py --admin-email admin@campus.edu --admin-password 'S3cret!'

This script is idempotent — safe to run multiple times.
"""

import argparse
import os

from app import create_app
from app.models import db
from app.models.auth import Permission, Role, RolePermission, User
from app.services.container import get_services
from app.services.permission_service import seed_default_roles


def seed_admin(email, password, username="admin"):
    """Create the admin account unless a user with that username or email exists."""
    existing = User.query.filter((User.username == username) | (User.email == email.lower())).first()
    if existing:
        print(f"  Admin: already exists (id={existing.id})")
        return existing

    user = get_services().users.create_user({
        "username": username,
        "email": email,
        "password": password,
        "full_name": "Administrator",
        "role": "admin",
    })
    print(f"  Admin: created {user.username} (id={user.id})")
    return user


def main():
    parser = argparse.ArgumentParser(description="Seed roles, permissions and an admin account")
    parser.add_argument("--env", default="development", help="App environment")
    parser.add_argument("--admin-email", help="Create an admin user with this email")
    parser.add_argument("--admin-password", help="Password for the admin user")
    args = parser.parse_args()

    os.environ.setdefault("APP_ENV", args.env)
    app = create_app(args.env)

    with app.app_context():
        print("=" * 60)
        print("  SEED: Roles, Permissions & Admin")
        print("=" * 60)

        print("\n📋 Seeding roles and permissions...")
        counts = seed_default_roles()
        db.session.commit()
        print(f"  Permissions: {counts['permissions']} created")
        print(f"  Roles: {counts['roles']} created")
        print(f"  Role-Permission assignments: {counts['grants']} new")

        if args.admin_email and args.admin_password:
            print("\n🔑 Seeding admin...")
            seed_admin(args.admin_email, args.admin_password)

        print("\n" + "=" * 60)
        print("  SUMMARY")
        print("=" * 60)
        print(f"  Permissions: {Permission.query.count()}")
        print(f"  Roles: {Role.query.count()}")
        print(f"  Role-Permission links: {RolePermission.query.count()}")
        print(f"  Users: {User.query.count()}")


if __name__ == "__main__":
    main()
