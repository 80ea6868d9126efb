"""
Per-date summaries for the calendar views, computed fresh on every call.
"""

from __future__ import annotations

from typing import Dict

from chapelboard.db import DbClient


def summarize(db: DbClient) -> Dict[str, dict]:
    """Map each date to ``{"hasWord": bool, "shareCount": int}``."""
    summary: Dict[str, dict] = {}
    for date in db.list_daily_word_dates():
        summary.setdefault(date, {"hasWord": False, "shareCount": 0})["hasWord"] = True
    for date, count in db.count_word_shares_by_date().items():
        summary.setdefault(date, {"hasWord": False, "shareCount": 0})["shareCount"] = count
    return summary


def photo_comment_counts(db: DbClient) -> Dict[str, int]:
    """Map each date that has a photo to its comment count (zero included)."""
    return db.count_comments_by_photo_date()
