"""Password hashing and bearer-token helpers.

Passwords for the local backend are verified with bcrypt.  Session tokens
are HS256 JWTs signed with python-jose and carry only the account id and
email; the profile (and therefore the role) is re-read on every request.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from pbportal import config
from pbportal.models.core import User

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Password hashing (direct bcrypt, avoids passlib compatibility issues)
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def create_access_token(user: User) -> str:
    """Create a signed JWT containing the user's id and email."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "email": user.email,
        "exp": now + timedelta(hours=config.JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Return the token claims, or ``None`` if the token is invalid or expired."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        return None
    if not payload.get("sub"):
        return None
    return payload
