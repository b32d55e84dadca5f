"""
Crypto utilities — bcrypt password hashing.

Supports both bcrypt ($2b$) and werkzeug (scrypt/pbkdf2) hashes so that
accounts imported from other systems keep working.
"""

import bcrypt
from werkzeug.security import check_password_hash


BCRYPT_ROUNDS = 12


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password with bcrypt (12 rounds by default)."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its hash.

    Handles both bcrypt ($2b$/$2a$) and werkzeug (scrypt/pbkdf2) formats.
    """
    if not password_hash:
        return False

    # Bcrypt hashes start with $2b$ or $2a$
    if password_hash.startswith(("$2b$", "$2a$")):
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )

    # Fall back to werkzeug hash verification
    return check_password_hash(password_hash, plain_password)
