"""
Daily photos (one per date, replaced wholesale on re-upload) and the
comments members leave on them.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from chapelboard.config import Settings
from chapelboard.db import DbClient
from chapelboard.errors import Conflict, Forbidden, InvalidInput, NotFound
from chapelboard.security import SessionUser
from chapelboard.validation import date_key, require_fields

logger = logging.getLogger(__name__)


def upload_daily_photo(
    db: DbClient,
    settings: Settings,
    user: SessionUser,
    *,
    date: Optional[str],
    image_url: Optional[str],
) -> dict:
    """
    Store ``image_url`` as the photo of ``date``, replacing any previous one.

    The replaced row and its comments are dropped and the new row gets a new
    id. Under the ``owner`` policy only the previous uploader may replace it.
    """
    if not image_url:
        raise InvalidInput("Image is required")
    date = date_key(date)

    existing = db.get_daily_photo_by_date(date)
    if (
        existing is not None
        and settings.daily_photo_replace_policy == "owner"
        and existing.uploaded_by != user.id
    ):
        raise Forbidden("Only the original uploader can replace this photo")

    try:
        record = db.replace_daily_photo(date=date, image_url=image_url, uploaded_by=user.id)
    except Conflict:
        # Lost a race with another upload for the same date; replace once more.
        record = db.replace_daily_photo(date=date, image_url=image_url, uploaded_by=user.id)
    if existing is not None:
        logger.info(
            "Daily photo for %s replaced by user %s (was %s by %s)",
            date,
            user.id,
            existing.id,
            existing.uploaded_by,
        )
    return record.as_dict()


def get_daily_photo(db: DbClient, date: str) -> Optional[dict]:
    record = db.get_daily_photo_by_date(date_key(date))
    return record.as_dict() if record else None


def create_comment(
    db: DbClient, user: SessionUser, *, daily_photo_id: Optional[int], content: Optional[str]
) -> dict:
    require_fields(
        "Daily photo ID and content are required",
        dailyPhotoId=daily_photo_id,
        content=content,
    )
    if db.get_daily_photo(daily_photo_id) is None:
        raise NotFound("Daily photo not found")
    record = db.create_comment(
        daily_photo_id=daily_photo_id, content=content, user_id=user.id
    )
    return record.as_dict()


def list_comments(db: DbClient, daily_photo_id: int) -> List[dict]:
    return [comment.as_dict() for comment in db.list_comments(daily_photo_id)]


def delete_comment(db: DbClient, user: SessionUser, comment_id: int) -> None:
    comment = db.get_comment(comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if comment.user_id != user.id:
        logger.warning(
            "[AUTH_FAIL] User %s tried to delete comment %s of user %s",
            user.id,
            comment_id,
            comment.user_id,
        )
        raise Forbidden("Not authorized to delete this comment")
    db.delete_comment(comment_id)
