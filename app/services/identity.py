"""
Identity Provider — credentials and bearer tokens to a Principal.

    authenticate(identifier, password) → (principal, permissions, user)
    verify(access_token)               → principal
    issue_tokens / refresh / logout    → refresh-session bookkeeping

The principal's role and permissions are read from the database on every
``verify`` so role changes and deactivation take effect immediately.
"""

import logging

import jwt as pyjwt

from app.core.exceptions import AccessDeniedError, AuthenticationError
from app.models import db
from app.models.auth import User
from app.services import jwt_service
from app.services.permission_service import get_role_permission_names
from app.services.principal import Principal
from app.utils.crypto import verify_password

logger = logging.getLogger(__name__)


def principal_for(user: User) -> Principal:
    return Principal(
        user_id=user.id,
        role_name=user.role_name,
        permissions=frozenset(get_role_permission_names(user.role)),
    )


class IdentityProvider:

    def authenticate(self, identifier: str, password: str):
        identifier = (identifier or "").strip()
        if not identifier or not password:
            raise AuthenticationError("Username and password are required")

        user = User.query.filter(
            (User.username == identifier) | (User.email == identifier.lower())
        ).first()
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login for %r", identifier)
            raise AuthenticationError("Invalid username or password")
        if not user.is_active:
            raise AccessDeniedError("Account is inactive")

        principal = principal_for(user)
        return principal, sorted(principal.permissions), user

    def verify(self, token: str) -> Principal:
        try:
            payload = jwt_service.decode_access_token(token)
        except pyjwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except pyjwt.InvalidTokenError as exc:
            raise AuthenticationError("Invalid token") from exc

        user = db.session.get(User, payload.get("sub"))
        if user is None or not user.is_active:
            raise AuthenticationError("User inactive or not found")
        return principal_for(user)

    # ── Sessions ──────────────────────────────────────────────────────────

    def issue_tokens(self, user: User, ip_address=None, user_agent=None) -> dict:
        principal = principal_for(user)
        tokens = jwt_service.generate_token_pair(user.id, user.role_name, sorted(principal.permissions))
        jwt_service.create_session(
            user.id, tokens["token_hash"], ip_address, user_agent, tokens["expires_at"],
        )
        return _public(tokens)

    def refresh(self, refresh_token: str, ip_address=None, user_agent=None) -> dict:
        if not refresh_token:
            raise AuthenticationError("Refresh token is required")
        try:
            payload = jwt_service.decode_refresh_token(refresh_token)
        except pyjwt.InvalidTokenError as exc:
            raise AuthenticationError("Invalid or expired refresh token") from exc

        user_id = payload.get("sub")
        session = jwt_service.get_active_session_by_token(user_id, jwt_service.hash_token(refresh_token))
        if session is None:
            raise AuthenticationError("Session not found or revoked")
        if session.is_expired:
            jwt_service.revoke_session(session)
            raise AuthenticationError("Session expired")

        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            jwt_service.revoke_session(session)
            raise AuthenticationError("User inactive or not found")

        principal = principal_for(user)
        tokens = jwt_service.generate_token_pair(user.id, user.role_name, sorted(principal.permissions))
        jwt_service.rotate_session(
            session, user.id, tokens["token_hash"], tokens["expires_at"], ip_address, user_agent,
        )
        return _public(tokens)

    def logout(self, refresh_token: str | None = None, user_id: str | None = None) -> None:
        if refresh_token:
            jwt_service.revoke_session_by_token(jwt_service.hash_token(refresh_token))
        elif user_id:
            jwt_service.revoke_all_user_sessions(user_id)


def _public(tokens: dict) -> dict:
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
    }
