"""
Backfill the image table for daily words saved before it existed.

Older entries keep their single picture in daily_words.imageUrl and have no
daily_word_images rows. This copies that URL into the image table so the
entry's picture can be removed like any other image.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chapelboard.db import DbClient
from chapelboard.dependencies import get_db_client


logger = logging.getLogger(__name__)


def backfill(db: DbClient, *, dry_run: bool) -> int:
    updated = 0
    for date in db.list_daily_word_dates():
        record = db.get_daily_word_by_date(date)
        if record is None or not record.image_url:
            continue
        if db.list_daily_word_images(record.id):
            continue
        updated += 1
        logger.info("Adopting legacy image of %s (%s)", date, record.image_url)
        if not dry_run:
            db.append_daily_word_images(record.id, [record.image_url])
    return updated


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill daily word images")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many entries would be updated without saving",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    db = get_db_client()
    updated = backfill(db, dry_run=args.dry_run)
    logger.info("Updated %d daily words", updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
