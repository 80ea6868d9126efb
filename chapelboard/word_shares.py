"""
Word shares: anonymous reflections on a date's word, edited or removed by
whoever knows the post's password.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from chapelboard.anonymous import new_password_hash, require_password
from chapelboard.config import Settings
from chapelboard.db import DbClient, WordShareRecord
from chapelboard.errors import InvalidInput, NotFound
from chapelboard.validation import date_key, require_fields

logger = logging.getLogger(__name__)


def list_word_shares(db: DbClient, date: str) -> List[dict]:
    return [share.as_dict() for share in db.list_word_shares_by_date(date_key(date))]


def create_word_share(
    db: DbClient,
    settings: Settings,
    *,
    date: str,
    author_name: str,
    password: str,
    content: str,
) -> dict:
    require_fields(date=date, authorName=author_name, password=password, content=content)
    record = db.create_word_share(
        date=date_key(date),
        author_name=author_name,
        password_hash=new_password_hash(password, settings),
        content=content,
    )
    logger.info("Word share %s created for %s", record.id, record.date)
    return record.as_dict()


def _load(db: DbClient, share_id: int) -> WordShareRecord:
    record = db.get_word_share(share_id)
    if record is None:
        raise NotFound("Post not found")
    return record


def update_word_share(
    db: DbClient, share_id: int, *, password: Optional[str], content: Optional[str]
) -> dict:
    require_fields("Content and password are required", password=password, content=content)
    record = _load(db, share_id)
    require_password(record, password)
    updated = db.update_word_share(share_id, content)
    if updated is None:
        raise NotFound("Post not found")
    return updated.as_dict()


def delete_word_share(db: DbClient, share_id: int, *, password: Optional[str]) -> None:
    if not password:
        raise InvalidInput("Password is required")
    record = _load(db, share_id)
    require_password(record, password)
    if not db.delete_word_share(share_id):
        raise NotFound("Post not found")
    logger.info("Word share %s deleted", share_id)
