"""
Password hashing (bcrypt) and session tokens (PyJWT).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import bcrypt
import jwt

from chapelboard.config import Settings
from chapelboard.errors import ServerError, Unauthenticated

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of the secret.
_BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class SessionUser:
    id: int
    username: str


def _encode_secret(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = 10) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_encode_secret(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """
    Constant-time check of ``plain`` against a stored bcrypt hash.

    A stored value that is not a usable bcrypt hash is a server-side
    problem, not a wrong password, so it raises ``ServerError``.
    """
    try:
        return bcrypt.checkpw(_encode_secret(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError) as exc:
        logger.error("Stored password hash could not be checked: %s", exc)
        raise ServerError("Password verification failed") from exc


def create_access_token(user: SessionUser, settings: Settings) -> str:
    now = int(time.time())
    payload = {
        "user": {"id": user.id, "username": user.username},
        "iat": now,
        "exp": now + settings.jwt_expires_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> SessionUser:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Token is not valid") from exc

    claims = payload.get("user") or {}
    user_id = claims.get("id")
    username = claims.get("username")
    if not isinstance(user_id, int) or not username:
        raise Unauthenticated("Token is not valid")
    return SessionUser(id=user_id, username=username)
