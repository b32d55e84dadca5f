"""
JWT Service — bearer tokens and refresh sessions.

Two HS256 token kinds share one signing key (JWT_SECRET_KEY, falling back
to SECRET_KEY):

    access   short-lived (JWT_ACCESS_EXPIRES, default 15 min)
             {"sub", "role", "permissions", "type": "access", "iat", "exp", "jti"}
    refresh  long-lived  (JWT_REFRESH_EXPIRES, default 7 days)
             {"sub", "type": "refresh", "iat", "exp", "jti"}

Refresh tokens are never stored raw: a Session row keeps their SHA-256 and
is deactivated on logout or rotation, so a refresh token is usable once.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from app.models import db
from app.models.auth import Session

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

DEFAULT_ACCESS_EXPIRES = 900
DEFAULT_REFRESH_EXPIRES = 604800


def _secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _ttl(kind):
    if kind == ACCESS:
        return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    return current_app.config.get("JWT_REFRESH_EXPIRES", DEFAULT_REFRESH_EXPIRES)


def _encode(kind, user_id, **claims):
    issued = datetime.now(timezone.utc)
    expires = issued + timedelta(seconds=_ttl(kind))
    payload = {
        "sub": user_id,
        **claims,
        "type": kind,
        "iat": issued,
        "exp": expires,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM), expires


# ═══════════════════════════════════════════════════════════════
# Issuing
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: str, role: str | None, permissions: list[str]) -> str:
    token, _ = _encode(ACCESS, user_id, role=role, permissions=list(permissions))
    return token


def generate_refresh_token(user_id: str) -> tuple[str, str, datetime]:
    """Return ``(raw_token, token_hash, expires_at)``."""
    token, expires = _encode(REFRESH, user_id)
    return token, hash_token(token), expires


def generate_token_pair(user_id: str, role: str | None, permissions: list[str]) -> dict:
    refresh_token, token_hash, expires_at = generate_refresh_token(user_id)
    return {
        "access_token": generate_access_token(user_id, role, permissions),
        "refresh_token": refresh_token,
        "token_hash": token_hash,
        "expires_at": expires_at,
        "token_type": "Bearer",
        "expires_in": _ttl(ACCESS),
    }


# ═══════════════════════════════════════════════════════════════
# Decoding
# ═══════════════════════════════════════════════════════════════
def decode_token(token: str, expected_type: str = ACCESS) -> dict:
    """Verify signature, expiry and token kind.

    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError.
    """
    payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")
    return payload


def decode_access_token(token: str) -> dict:
    return decode_token(token, ACCESS)


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, REFRESH)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ═══════════════════════════════════════════════════════════════
# Refresh sessions
# ═══════════════════════════════════════════════════════════════
def _new_session(user_id, token_hash, expires_at, ip_address, user_agent) -> Session:
    session = Session(
        user_id=user_id,
        token_hash=token_hash,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500],
        expires_at=expires_at,
    )
    db.session.add(session)
    return session


def create_session(
    user_id: str,
    token_hash: str,
    ip_address: str | None,
    user_agent: str | None,
    expires_at: datetime,
) -> Session:
    session = _new_session(user_id, token_hash, expires_at, ip_address, user_agent)
    db.session.commit()
    return session


def get_active_session_by_token(user_id: str, token_hash: str) -> Session | None:
    return Session.query.filter_by(user_id=user_id, token_hash=token_hash, is_active=True).first()


def rotate_session(
    old_session: Session,
    user_id: str,
    new_token_hash: str,
    new_expires_at: datetime,
    ip_address: str | None,
    user_agent: str | None,
) -> Session:
    """Retire ``old_session`` and open its successor in one commit."""
    old_session.is_active = False
    old_session.last_used_at = datetime.now(timezone.utc)
    session = _new_session(user_id, new_token_hash, new_expires_at, ip_address, user_agent)
    db.session.commit()
    return session


def revoke_session(session: Session) -> None:
    session.is_active = False
    db.session.commit()


def revoke_session_by_token(token_hash: str) -> bool:
    """Deactivate the live session holding ``token_hash``; False if none."""
    session = Session.query.filter_by(token_hash=token_hash, is_active=True).first()
    if session is None:
        return False
    revoke_session(session)
    return True


def revoke_all_user_sessions(user_id: str) -> None:
    Session.query.filter_by(user_id=user_id, is_active=True).update({"is_active": False})
    db.session.commit()
