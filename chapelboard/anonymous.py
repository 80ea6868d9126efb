"""
Password-gated ownership for anonymous content.

Daily words, word shares and anonymous gallery photos have no account behind
them. Whoever created the record chose a password; anyone presenting that
password may edit or delete it. The hash lives on the record and never
leaves the repository layer: every record's ``as_dict()`` omits it.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from chapelboard.config import Settings
from chapelboard.errors import Forbidden, InvalidInput
from chapelboard.security import hash_password, verify_password

logger = logging.getLogger(__name__)

WRONG_PASSWORD = "Password does not match"


class PasswordProtected(Protocol):
    id: Optional[int]
    password_hash: Optional[str]


def new_password_hash(password: str, settings: Settings) -> str:
    return hash_password(password, rounds=settings.bcrypt_rounds)


def require_password(record: PasswordProtected, password: Optional[str]) -> None:
    """
    Verify ``password`` against the record's stored hash.

    Raises ``InvalidInput`` when no password was supplied, ``Forbidden`` on a
    mismatch, and lets ``ServerError`` from a corrupted hash propagate.
    """
    if not password:
        raise InvalidInput("Password is required")
    if not record.password_hash or not verify_password(password, record.password_hash):
        logger.warning(
            "[AUTH_FAIL] Wrong password for %s %s",
            type(record).__name__,
            record.id,
        )
        raise Forbidden(WRONG_PASSWORD)
