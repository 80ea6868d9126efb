"""
Repository interface for the bulletin data and an in-memory implementation.

The SQLAlchemy-backed implementation lives in ``chapelboard.db_sql``; both
satisfy ``DbClient`` so handlers never know which one they talk to.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from chapelboard.errors import Conflict, NotFound


def utc_timestamp() -> str:
    """Timestamp in the ``YYYY-MM-DD HH:MM:SS`` form SQLite uses."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class UserRecord:
    id: int
    username: str
    password_hash: str
    created_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "createdAt": self.created_at}


@dataclass
class PostRecord:
    id: int
    title: str
    content: str
    image_url: Optional[str]
    images: List[str]
    author_name: Optional[str]
    user_id: Optional[int]
    created_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "imageUrl": self.image_url,
            "images": list(self.images),
            "authorName": self.author_name,
            "userId": self.user_id,
            "createdAt": self.created_at,
        }


@dataclass
class DailyWordRecord:
    id: int
    date: str
    title: str
    passage: str
    content: str
    author_name: str
    password_hash: str
    image_url: Optional[str] = None
    file_url: Optional[str] = None
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "title": self.title,
            "passage": self.passage,
            "content": self.content,
            "authorName": self.author_name,
            "imageUrl": self.image_url,
            "fileUrl": self.file_url,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class ImageRecord:
    id: Optional[int]
    daily_word_id: int
    image_url: str
    sort_order: int
    created_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {"id": self.id, "imageUrl": self.image_url, "sortOrder": self.sort_order}


@dataclass
class WordShareRecord:
    id: int
    date: str
    author_name: str
    password_hash: str
    content: str
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "authorName": self.author_name,
            "content": self.content,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class DailyPhotoRecord:
    id: int
    date: str
    image_url: str
    uploaded_by: Optional[int]
    created_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "imageUrl": self.image_url,
            "uploadedBy": self.uploaded_by,
            "createdAt": self.created_at,
        }


@dataclass
class CommentRecord:
    id: int
    daily_photo_id: int
    content: str
    user_id: int
    created_at: str = field(default_factory=utc_timestamp)
    username: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "dailyPhotoId": self.daily_photo_id,
            "content": self.content,
            "userId": self.user_id,
            "username": self.username,
            "createdAt": self.created_at,
        }


@dataclass
class GalleryRecord:
    id: int
    author_name: str
    title: str
    image_url: str
    user_id: Optional[int] = None
    password_hash: Optional[str] = None
    created_at: str = field(default_factory=utc_timestamp)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "authorName": self.author_name,
            "title": self.title,
            "imageUrl": self.image_url,
            "userId": self.user_id,
            "createdAt": self.created_at,
        }


class DbClient(Protocol):
    """Interface for database access."""

    # accounts
    def create_user(self, username: str, password_hash: str) -> UserRecord:
        ...

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        ...

    # posts
    def create_post(
        self,
        *,
        title: str,
        content: str,
        image_urls: List[str],
        author_name: Optional[str],
        user_id: Optional[int],
        created_at: Optional[str] = None,
    ) -> PostRecord:
        ...

    def list_posts(self) -> List[PostRecord]:
        ...

    def list_posts_by_date(self, date: str) -> List[PostRecord]:
        ...

    def count_posts_by_date(self) -> Dict[str, int]:
        ...

    # daily words
    def get_daily_word(self, word_id: int) -> Optional[DailyWordRecord]:
        ...

    def get_daily_word_by_date(self, date: str) -> Optional[DailyWordRecord]:
        ...

    def insert_daily_word(
        self,
        *,
        date: str,
        title: str,
        passage: str,
        content: str,
        author_name: str,
        password_hash: str,
        image_url: Optional[str] = None,
        file_url: Optional[str] = None,
        image_urls: Sequence[str] = (),
    ) -> DailyWordRecord:
        """
        Insert the entry for ``date`` together with its first images.

        Raises ``Conflict`` when the date already has an entry.
        """
        ...

    def update_daily_word(
        self,
        word_id: int,
        *,
        title: str,
        passage: str,
        content: str,
        author_name: str,
        image_url: Optional[str],
        file_url: Optional[str],
    ) -> Optional[DailyWordRecord]:
        ...

    def delete_daily_word(self, word_id: int) -> bool:
        ...

    def list_daily_word_dates(self) -> List[str]:
        ...

    def list_daily_word_images(self, word_id: int) -> List[ImageRecord]:
        ...

    def append_daily_word_images(
        self, word_id: int, image_urls: List[str]
    ) -> List[ImageRecord]:
        """Append after the current highest sortOrder; ``NotFound`` if the entry is gone."""
        ...

    def delete_daily_word_images(self, word_id: int, image_ids: Iterable[int]) -> int:
        ...

    # word shares
    def create_word_share(
        self, *, date: str, author_name: str, password_hash: str, content: str
    ) -> WordShareRecord:
        ...

    def get_word_share(self, share_id: int) -> Optional[WordShareRecord]:
        ...

    def list_word_shares_by_date(self, date: str) -> List[WordShareRecord]:
        ...

    def update_word_share(self, share_id: int, content: str) -> Optional[WordShareRecord]:
        ...

    def delete_word_share(self, share_id: int) -> bool:
        ...

    def count_word_shares_by_date(self) -> Dict[str, int]:
        ...

    # daily photos and comments
    def replace_daily_photo(
        self, *, date: str, image_url: str, uploaded_by: Optional[int]
    ) -> DailyPhotoRecord:
        ...

    def get_daily_photo(self, photo_id: int) -> Optional[DailyPhotoRecord]:
        ...

    def get_daily_photo_by_date(self, date: str) -> Optional[DailyPhotoRecord]:
        ...

    def count_comments_by_photo_date(self) -> Dict[str, int]:
        ...

    def create_comment(
        self, *, daily_photo_id: int, content: str, user_id: int
    ) -> CommentRecord:
        ...

    def get_comment(self, comment_id: int) -> Optional[CommentRecord]:
        ...

    def list_comments(self, daily_photo_id: int) -> List[CommentRecord]:
        ...

    def delete_comment(self, comment_id: int) -> bool:
        ...

    # gallery
    def create_gallery_photo(
        self,
        *,
        author_name: str,
        title: str,
        image_url: str,
        user_id: Optional[int] = None,
        password_hash: Optional[str] = None,
    ) -> GalleryRecord:
        ...

    def get_gallery_photo(self, photo_id: int) -> Optional[GalleryRecord]:
        ...

    def list_gallery(self) -> List[GalleryRecord]:
        ...

    def delete_gallery_photo(self, photo_id: int) -> bool:
        ...


def _next_sort_order(images: Iterable[ImageRecord]) -> int:
    orders = [image.sort_order for image in images]
    return max(orders) + 1 if orders else 0


class InMemoryDbClient:
    """
    Simple in-memory database for development and tests.

    Every method holds the lock, reads included, since handlers run on
    uvicorn's threadpool.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self._ids = {}
            self.users: Dict[int, UserRecord] = {}
            self.posts: Dict[int, PostRecord] = {}
            self.daily_words: Dict[int, DailyWordRecord] = {}
            self.daily_word_images: Dict[int, ImageRecord] = {}
            self.word_shares: Dict[int, WordShareRecord] = {}
            self.daily_photos: Dict[int, DailyPhotoRecord] = {}
            self.comments: Dict[int, CommentRecord] = {}
            self.gallery: Dict[int, GalleryRecord] = {}

    def _next_id(self, table: str) -> int:
        counter = self._ids.setdefault(table, itertools.count(1))
        return next(counter)

    # accounts

    def create_user(self, username: str, password_hash: str) -> UserRecord:
        with self._lock:
            if self.get_user_by_username(username):
                raise Conflict("User already exists")
            record = UserRecord(
                id=self._next_id("users"), username=username, password_hash=password_hash
            )
            self.users[record.id] = record
            return replace(record)

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._lock:
            record = self.users.get(user_id)
            return replace(record) if record else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            for record in self.users.values():
                if record.username == username:
                    return replace(record)
            return None

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        with self._lock:
            record = self.users.get(user_id)
            if record:
                record.password_hash = password_hash

    # posts

    def create_post(
        self,
        *,
        title: str,
        content: str,
        image_urls: List[str],
        author_name: Optional[str],
        user_id: Optional[int],
        created_at: Optional[str] = None,
    ) -> PostRecord:
        with self._lock:
            record = PostRecord(
                id=self._next_id("posts"),
                title=title,
                content=content,
                image_url=image_urls[0] if image_urls else None,
                images=list(image_urls),
                author_name=author_name,
                user_id=user_id,
                created_at=created_at or utc_timestamp(),
            )
            self.posts[record.id] = record
            return replace(record)

    def _sorted_posts(self, posts: Iterable[PostRecord]) -> List[PostRecord]:
        ordered = sorted(posts, key=lambda p: (p.created_at, p.id), reverse=True)
        return [replace(post) for post in ordered]

    def list_posts(self) -> List[PostRecord]:
        with self._lock:
            return self._sorted_posts(self.posts.values())

    def list_posts_by_date(self, date: str) -> List[PostRecord]:
        with self._lock:
            return self._sorted_posts(
                post for post in self.posts.values() if post.created_at[:10] == date
            )

    def count_posts_by_date(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for post in self.posts.values():
                day = post.created_at[:10]
                counts[day] = counts.get(day, 0) + 1
        return counts

    # daily words

    def get_daily_word(self, word_id: int) -> Optional[DailyWordRecord]:
        with self._lock:
            record = self.daily_words.get(word_id)
            return replace(record) if record else None

    def get_daily_word_by_date(self, date: str) -> Optional[DailyWordRecord]:
        with self._lock:
            for record in self.daily_words.values():
                if record.date == date:
                    return replace(record)
            return None

    def insert_daily_word(
        self,
        *,
        date: str,
        title: str,
        passage: str,
        content: str,
        author_name: str,
        password_hash: str,
        image_url: Optional[str] = None,
        file_url: Optional[str] = None,
        image_urls: Sequence[str] = (),
    ) -> DailyWordRecord:
        with self._lock:
            if self.get_daily_word_by_date(date):
                raise Conflict(f"A daily word already exists for {date}")
            record = DailyWordRecord(
                id=self._next_id("daily_words"),
                date=date,
                title=title,
                passage=passage,
                content=content,
                author_name=author_name,
                password_hash=password_hash,
                image_url=image_url or (image_urls[0] if image_urls else None),
                file_url=file_url,
            )
            self.daily_words[record.id] = record
            self.append_daily_word_images(record.id, list(image_urls))
            return replace(record)

    def update_daily_word(
        self,
        word_id: int,
        *,
        title: str,
        passage: str,
        content: str,
        author_name: str,
        image_url: Optional[str],
        file_url: Optional[str],
    ) -> Optional[DailyWordRecord]:
        with self._lock:
            record = self.daily_words.get(word_id)
            if not record:
                return None
            record.title = title
            record.passage = passage
            record.content = content
            record.author_name = author_name
            record.image_url = image_url
            record.file_url = file_url
            record.updated_at = utc_timestamp()
            return replace(record)

    def delete_daily_word(self, word_id: int) -> bool:
        with self._lock:
            if self.daily_words.pop(word_id, None) is None:
                return False
            for image_id in [
                image.id
                for image in self.daily_word_images.values()
                if image.daily_word_id == word_id
            ]:
                del self.daily_word_images[image_id]
            return True

    def list_daily_word_dates(self) -> List[str]:
        with self._lock:
            return sorted(record.date for record in self.daily_words.values())

    def list_daily_word_images(self, word_id: int) -> List[ImageRecord]:
        with self._lock:
            images = [
                replace(image)
                for image in self.daily_word_images.values()
                if image.daily_word_id == word_id
            ]
        return sorted(images, key=lambda image: (image.sort_order, image.id))

    def append_daily_word_images(
        self, word_id: int, image_urls: List[str]
    ) -> List[ImageRecord]:
        if not image_urls:
            return []
        with self._lock:
            if word_id not in self.daily_words:
                raise NotFound(f"Daily word {word_id} no longer exists")
            start = _next_sort_order(self.list_daily_word_images(word_id))
            added = []
            for offset, url in enumerate(image_urls):
                image = ImageRecord(
                    id=self._next_id("daily_word_images"),
                    daily_word_id=word_id,
                    image_url=url,
                    sort_order=start + offset,
                )
                self.daily_word_images[image.id] = image
                added.append(replace(image))
            return added

    def delete_daily_word_images(self, word_id: int, image_ids: Iterable[int]) -> int:
        deleted = 0
        with self._lock:
            for image_id in set(image_ids):
                image = self.daily_word_images.get(image_id)
                if image and image.daily_word_id == word_id:
                    del self.daily_word_images[image_id]
                    deleted += 1
        return deleted

    # word shares

    def create_word_share(
        self, *, date: str, author_name: str, password_hash: str, content: str
    ) -> WordShareRecord:
        with self._lock:
            record = WordShareRecord(
                id=self._next_id("word_shares"),
                date=date,
                author_name=author_name,
                password_hash=password_hash,
                content=content,
            )
            self.word_shares[record.id] = record
            return replace(record)

    def get_word_share(self, share_id: int) -> Optional[WordShareRecord]:
        with self._lock:
            record = self.word_shares.get(share_id)
            return replace(record) if record else None

    def list_word_shares_by_date(self, date: str) -> List[WordShareRecord]:
        with self._lock:
            shares = [replace(r) for r in self.word_shares.values() if r.date == date]
        return sorted(shares, key=lambda r: (r.created_at, r.id))

    def update_word_share(self, share_id: int, content: str) -> Optional[WordShareRecord]:
        with self._lock:
            record = self.word_shares.get(share_id)
            if not record:
                return None
            record.content = content
            record.updated_at = utc_timestamp()
            return replace(record)

    def delete_word_share(self, share_id: int) -> bool:
        with self._lock:
            return self.word_shares.pop(share_id, None) is not None

    def count_word_shares_by_date(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with self._lock:
            for record in self.word_shares.values():
                counts[record.date] = counts.get(record.date, 0) + 1
        return counts

    # daily photos and comments

    def replace_daily_photo(
        self, *, date: str, image_url: str, uploaded_by: Optional[int]
    ) -> DailyPhotoRecord:
        with self._lock:
            existing = self.get_daily_photo_by_date(date)
            if existing:
                self._delete_daily_photo(existing.id)
            record = DailyPhotoRecord(
                id=self._next_id("daily_photos"),
                date=date,
                image_url=image_url,
                uploaded_by=uploaded_by,
            )
            self.daily_photos[record.id] = record
            return replace(record)

    def _delete_daily_photo(self, photo_id: int) -> None:
        self.daily_photos.pop(photo_id, None)
        for comment_id in [
            c.id for c in self.comments.values() if c.daily_photo_id == photo_id
        ]:
            del self.comments[comment_id]

    def get_daily_photo(self, photo_id: int) -> Optional[DailyPhotoRecord]:
        with self._lock:
            record = self.daily_photos.get(photo_id)
            return replace(record) if record else None

    def get_daily_photo_by_date(self, date: str) -> Optional[DailyPhotoRecord]:
        with self._lock:
            for record in self.daily_photos.values():
                if record.date == date:
                    return replace(record)
            return None

    def count_comments_by_photo_date(self) -> Dict[str, int]:
        with self._lock:
            counts = {photo.date: 0 for photo in self.daily_photos.values()}
            by_id = {photo.id: photo.date for photo in self.daily_photos.values()}
            for comment in self.comments.values():
                date = by_id.get(comment.daily_photo_id)
                if date is not None:
                    counts[date] += 1
        return counts

    def create_comment(
        self, *, daily_photo_id: int, content: str, user_id: int
    ) -> CommentRecord:
        with self._lock:
            record = CommentRecord(
                id=self._next_id("comments"),
                daily_photo_id=daily_photo_id,
                content=content,
                user_id=user_id,
            )
            self.comments[record.id] = record
            return self._with_username(record)

    def _with_username(self, record: CommentRecord) -> CommentRecord:
        user = self.users.get(record.user_id)
        return replace(record, username=user.username if user else None)

    def get_comment(self, comment_id: int) -> Optional[CommentRecord]:
        with self._lock:
            record = self.comments.get(comment_id)
            return self._with_username(record) if record else None

    def list_comments(self, daily_photo_id: int) -> List[CommentRecord]:
        with self._lock:
            comments = [
                self._with_username(c)
                for c in self.comments.values()
                if c.daily_photo_id == daily_photo_id
            ]
        return sorted(comments, key=lambda c: (c.created_at, c.id))

    def delete_comment(self, comment_id: int) -> bool:
        with self._lock:
            return self.comments.pop(comment_id, None) is not None

    # gallery

    def create_gallery_photo(
        self,
        *,
        author_name: str,
        title: str,
        image_url: str,
        user_id: Optional[int] = None,
        password_hash: Optional[str] = None,
    ) -> GalleryRecord:
        with self._lock:
            record = GalleryRecord(
                id=self._next_id("gallery"),
                author_name=author_name,
                title=title,
                image_url=image_url,
                user_id=user_id,
                password_hash=password_hash,
            )
            self.gallery[record.id] = record
            return replace(record)

    def get_gallery_photo(self, photo_id: int) -> Optional[GalleryRecord]:
        with self._lock:
            record = self.gallery.get(photo_id)
            return replace(record) if record else None

    def list_gallery(self) -> List[GalleryRecord]:
        with self._lock:
            ordered = sorted(
                self.gallery.values(), key=lambda r: (r.created_at, r.id), reverse=True
            )
            return [replace(record) for record in ordered]

    def delete_gallery_photo(self, photo_id: int) -> bool:
        with self._lock:
            return self.gallery.pop(photo_id, None) is not None
