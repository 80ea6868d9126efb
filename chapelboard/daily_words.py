"""
Daily words: one password-protected entry per calendar date, with an
ordered image collection.

A submission for a date that already has an entry is an edit of that entry
and must prove the original password; only a submission for an empty date
creates a record (and fixes its password for good). The record id is stable
across edits.

Image collection rules:

- images are listed by ``sortOrder`` then id;
- new images are appended after the current maximum ``sortOrder``;
- deletions only touch images of the record being edited, and are applied
  before additions;
- records from before the image table carry a single ``imageUrl``. When
  such a record has no image rows, that URL is reported as one pseudo-image
  without an id. Adding images to it adopts the legacy URL into the
  collection first so it stays visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from chapelboard.anonymous import new_password_hash, require_password
from chapelboard.config import Settings
from chapelboard.db import DailyWordRecord, DbClient, ImageRecord
from chapelboard.errors import Conflict, InvalidInput, NotFound
from chapelboard.validation import date_key, require_fields

logger = logging.getLogger(__name__)


@dataclass
class DailyWordSubmission:
    date: str
    title: str
    content: str
    author_name: str
    password: str
    passage: str = ""
    image_urls: List[str] = field(default_factory=list)
    file_url: Optional[str] = None
    delete_image_ids: List[int] = field(default_factory=list)


def _legacy_image(record: DailyWordRecord) -> ImageRecord:
    return ImageRecord(
        id=None, daily_word_id=record.id, image_url=record.image_url, sort_order=0
    )


def list_images(db: DbClient, record: DailyWordRecord) -> List[dict]:
    images = db.list_daily_word_images(record.id)
    if not images and record.image_url:
        images = [_legacy_image(record)]
    return [image.as_dict() for image in images]


def serialize(db: DbClient, record: DailyWordRecord) -> dict:
    data = record.as_dict()
    data["images"] = list_images(db, record)
    return data


def get_daily_word(db: DbClient, date: str) -> Optional[dict]:
    record = db.get_daily_word_by_date(date_key(date))
    if record is None:
        return None
    return serialize(db, record)


def upsert_daily_word(
    db: DbClient, settings: Settings, submission: DailyWordSubmission
) -> Tuple[dict, bool]:
    """
    Create the entry for ``submission.date`` or edit the existing one.

    Returns the serialized record and whether it was newly created.
    """
    require_fields(
        date=submission.date,
        title=submission.title,
        content=submission.content,
        authorName=submission.author_name,
        password=submission.password,
    )
    date = date_key(submission.date)

    existing = db.get_daily_word_by_date(date)
    if existing is None:
        try:
            return _create(db, settings, submission), True
        except Conflict:
            # Someone else created the date between our read and insert.
            existing = db.get_daily_word_by_date(date)
            if existing is None:
                raise
            logger.info("Daily word for %s created concurrently; treating as edit", date)
    return _edit(db, existing, submission), False


def _create(db: DbClient, settings: Settings, submission: DailyWordSubmission) -> dict:
    record = db.insert_daily_word(
        date=submission.date,
        title=submission.title,
        passage=submission.passage or "",
        content=submission.content,
        author_name=submission.author_name,
        password_hash=new_password_hash(submission.password, settings),
        file_url=submission.file_url,
        image_urls=submission.image_urls,
    )
    logger.info(
        "Daily word %s created for %s with %d images",
        record.id,
        record.date,
        len(submission.image_urls),
    )
    return serialize(db, record)


def _edit(db: DbClient, existing: DailyWordRecord, submission: DailyWordSubmission) -> dict:
    require_password(existing, submission.password)

    is_legacy = bool(existing.image_url) and not db.list_daily_word_images(existing.id)

    if submission.delete_image_ids:
        removed = db.delete_daily_word_images(existing.id, submission.delete_image_ids)
        logger.info("Removed %d images from daily word %s", removed, existing.id)

    if submission.image_urls:
        if is_legacy:
            db.append_daily_word_images(existing.id, [existing.image_url])
        db.append_daily_word_images(existing.id, submission.image_urls)

    images = db.list_daily_word_images(existing.id)
    if images:
        image_url = images[0].image_url
    elif is_legacy:
        image_url = existing.image_url
    else:
        image_url = None

    updated = db.update_daily_word(
        existing.id,
        title=submission.title,
        passage=submission.passage or "",
        content=submission.content,
        author_name=submission.author_name,
        image_url=image_url,
        file_url=submission.file_url or existing.file_url,
    )
    if updated is None:
        raise NotFound(f"No daily word for {existing.date}")
    logger.info("Daily word %s updated for %s", updated.id, updated.date)
    return serialize(db, updated)


def delete_daily_word(db: DbClient, date: str, password: Optional[str]) -> None:
    date = date_key(date)
    if not password:
        raise InvalidInput("Password is required")
    existing = db.get_daily_word_by_date(date)
    if existing is None:
        raise NotFound(f"No daily word for {date}")
    require_password(existing, password)
    if not db.delete_daily_word(existing.id):
        raise NotFound(f"No daily word for {date}")
    logger.info("Daily word %s deleted for %s", existing.id, date)
