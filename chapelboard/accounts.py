"""
Member accounts: registration, login and password changes.
"""

from __future__ import annotations

import logging

from chapelboard.config import Settings
from chapelboard.db import DbClient, UserRecord
from chapelboard.errors import Conflict, Forbidden, InvalidInput, NotFound
from chapelboard.security import (
    SessionUser,
    create_access_token,
    hash_password,
    verify_password,
)
from chapelboard.validation import require_fields

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


def register(db: DbClient, settings: Settings, *, username: str, password: str) -> UserRecord:
    require_fields("Username and password are required", username=username, password=password)
    if db.get_user_by_username(username):
        raise Conflict("User already exists")
    record = db.create_user(username, hash_password(password, rounds=settings.bcrypt_rounds))
    logger.info("Registered user %s (%s)", record.id, record.username)
    return record


def login(db: DbClient, settings: Settings, *, username: str, password: str) -> str:
    """Return a signed session token; unknown user and wrong password look alike."""
    require_fields("Username and password are required", username=username, password=password)
    user = db.get_user_by_username(username)
    if user is None:
        logger.warning("[AUTH_FAIL] Login attempt with non-existent user: %s", username)
        raise InvalidInput(INVALID_CREDENTIALS)
    if not verify_password(password, user.password_hash):
        logger.warning("[AUTH_FAIL] Wrong password for user: %s", username)
        raise InvalidInput(INVALID_CREDENTIALS)
    return create_access_token(SessionUser(id=user.id, username=user.username), settings)


def change_password(
    db: DbClient,
    settings: Settings,
    user: SessionUser,
    *,
    current_password: str,
    new_password: str,
) -> None:
    require_fields(
        "Current and new password are required",
        currentPassword=current_password,
        newPassword=new_password,
    )
    record = db.get_user(user.id)
    if record is None:
        raise NotFound("User not found")
    if not verify_password(current_password, record.password_hash):
        logger.warning("[AUTH_FAIL] Wrong current password for user: %s", record.username)
        raise InvalidInput("Current password is incorrect")
    db.update_user_password(record.id, hash_password(new_password, rounds=settings.bcrypt_rounds))
    logger.info("Password changed for user %s", record.id)


def reset_password(
    db: DbClient, settings: Settings, *, username: str, new_password: str
) -> None:
    """
    Overwrite a member's password knowing only the username.

    This proves nothing about the caller; ``allow_username_password_reset``
    turns it off.
    """
    if not settings.allow_username_password_reset:
        raise Forbidden("Password reset by username is disabled")
    require_fields(
        "Username and new password are required",
        username=username,
        newPassword=new_password,
    )
    record = db.get_user_by_username(username)
    if record is None:
        raise NotFound("User not found")
    db.update_user_password(record.id, hash_password(new_password, rounds=settings.bcrypt_rounds))
    logger.warning("Password for user %s reset by username only", record.id)
