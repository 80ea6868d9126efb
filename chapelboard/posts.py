"""
Member posts. The first uploaded image is mirrored into ``imageUrl`` for
older clients; the full list is kept in ``images``.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from chapelboard.db import DbClient
from chapelboard.security import SessionUser
from chapelboard.validation import date_key, require_fields, timestamp_key

MAX_POST_IMAGES = 10


def create_post(
    db: DbClient,
    user: SessionUser,
    *,
    title: Optional[str],
    content: Optional[str],
    image_urls: List[str],
    created_at: Optional[str] = None,
) -> dict:
    require_fields("Title and content are required", title=title, content=content)
    record = db.create_post(
        title=title,
        content=content,
        image_urls=image_urls[:MAX_POST_IMAGES],
        author_name=user.username,
        user_id=user.id,
        created_at=timestamp_key(created_at),
    )
    return record.as_dict()


def list_posts(db: DbClient) -> List[dict]:
    return [post.as_dict() for post in db.list_posts()]


def list_posts_by_date(db: DbClient, date: str) -> List[dict]:
    return [post.as_dict() for post in db.list_posts_by_date(date_key(date))]


def count_posts_by_date(db: DbClient) -> Dict[str, int]:
    return db.count_posts_by_date()
