"""
Photo gallery. Members post under their account; visitors may post under a
name and password. Each kind of row is removed the way it was created.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from chapelboard.anonymous import new_password_hash, require_password
from chapelboard.config import Settings
from chapelboard.db import DbClient
from chapelboard.errors import Forbidden, InvalidInput, NotFound, Unauthenticated
from chapelboard.security import SessionUser
from chapelboard.validation import require_fields

logger = logging.getLogger(__name__)


def list_gallery(db: DbClient) -> List[dict]:
    return [photo.as_dict() for photo in db.list_gallery()]


def create_member_photo(
    db: DbClient, user: SessionUser, *, title: Optional[str], image_url: Optional[str]
) -> dict:
    if not image_url:
        raise InvalidInput("Please choose a photo")
    record = db.create_gallery_photo(
        author_name=user.username,
        title=title or "",
        image_url=image_url,
        user_id=user.id,
    )
    logger.info("Gallery photo %s added by user %s", record.id, user.id)
    return record.as_dict()


def create_anonymous_photo(
    db: DbClient,
    settings: Settings,
    *,
    author_name: Optional[str],
    password: Optional[str],
    title: Optional[str],
    image_url: Optional[str],
) -> dict:
    if not image_url:
        raise InvalidInput("Please choose a photo")
    require_fields(authorName=author_name, password=password)
    record = db.create_gallery_photo(
        author_name=author_name,
        title=title or "",
        image_url=image_url,
        password_hash=new_password_hash(password, settings),
    )
    logger.info("Anonymous gallery photo %s added", record.id)
    return record.as_dict()


def delete_photo(
    db: DbClient,
    photo_id: int,
    *,
    user: Optional[SessionUser],
    password: Optional[str] = None,
) -> None:
    """
    Member photos need the owning session; anonymous photos need the password.
    """
    record = db.get_gallery_photo(photo_id)
    if record is None:
        raise NotFound("Photo not found")

    if record.user_id is not None:
        if user is None:
            raise Unauthenticated("No token, authorization denied")
        if record.user_id != user.id:
            raise Forbidden("You can only delete your own photos")
    else:
        require_password(record, password)

    db.delete_gallery_photo(photo_id)
    logger.info("Gallery photo %s deleted", photo_id)
