"""
SQLAlchemy-backed implementation of ``DbClient``.

Accepts any SQLAlchemy URL; SQLite is the default deployment target.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from chapelboard.db import (
    CommentRecord,
    DailyPhotoRecord,
    DailyWordRecord,
    GalleryRecord,
    ImageRecord,
    PostRecord,
    UserRecord,
    WordShareRecord,
    utc_timestamp,
)
from chapelboard.errors import Conflict, NotFound

Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)


class PostRow(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column("imageUrl", String, nullable=True)
    images = Column(JSON, nullable=False, default=list)
    author_name = Column("authorName", String, nullable=True)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column("createdAt", String, nullable=False, index=True)


class DailyWordRow(Base):
    __tablename__ = "daily_words"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    passage = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False)
    author_name = Column("authorName", String, nullable=False)
    password = Column(String, nullable=False)
    image_url = Column("imageUrl", String, nullable=True)
    file_url = Column("fileUrl", String, nullable=True)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)
    updated_at = Column("updatedAt", String, nullable=False, default=utc_timestamp)


class DailyWordImageRow(Base):
    __tablename__ = "daily_word_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    daily_word_id = Column(
        "dailyWordId",
        Integer,
        ForeignKey("daily_words.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    image_url = Column("imageUrl", String, nullable=False)
    sort_order = Column("sortOrder", Integer, nullable=False, default=0)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)


class WordShareRow(Base):
    __tablename__ = "word_shares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(String, nullable=False, index=True)
    author_name = Column("authorName", String, nullable=False)
    password = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)
    updated_at = Column("updatedAt", String, nullable=False, default=utc_timestamp)


class DailyPhotoRow(Base):
    __tablename__ = "daily_photos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(String, unique=True, nullable=False)
    image_url = Column("imageUrl", String, nullable=False)
    uploaded_by = Column("uploadedBy", Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)


class CommentRow(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    daily_photo_id = Column(
        "dailyPhotoId",
        Integer,
        ForeignKey("daily_photos.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)


class GalleryRow(Base):
    __tablename__ = "gallery"

    id = Column(Integer, primary_key=True, autoincrement=True)
    author_name = Column("authorName", String, nullable=False)
    password = Column(String, nullable=True)
    title = Column(String, nullable=True)
    image_url = Column("imageUrl", String, nullable=False)
    user_id = Column("userId", Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column("createdAt", String, nullable=False, default=utc_timestamp)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (SQLite in
    production and tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite:"):
                # One shared connection, otherwise each thread sees its own empty DB.
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # row -> record

    def _to_user(self, row: UserRow) -> UserRecord:
        return UserRecord(
            id=row.id,
            username=row.username,
            password_hash=row.password,
            created_at=row.created_at,
        )

    def _to_post(self, row: PostRow) -> PostRecord:
        return PostRecord(
            id=row.id,
            title=row.title,
            content=row.content,
            image_url=row.image_url,
            images=list(row.images or []),
            author_name=row.author_name,
            user_id=row.user_id,
            created_at=row.created_at,
        )

    def _to_daily_word(self, row: DailyWordRow) -> DailyWordRecord:
        return DailyWordRecord(
            id=row.id,
            date=row.date,
            title=row.title,
            passage=row.passage or "",
            content=row.content,
            author_name=row.author_name,
            password_hash=row.password,
            image_url=row.image_url,
            file_url=row.file_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_image(self, row: DailyWordImageRow) -> ImageRecord:
        return ImageRecord(
            id=row.id,
            daily_word_id=row.daily_word_id,
            image_url=row.image_url,
            sort_order=row.sort_order,
            created_at=row.created_at,
        )

    def _to_word_share(self, row: WordShareRow) -> WordShareRecord:
        return WordShareRecord(
            id=row.id,
            date=row.date,
            author_name=row.author_name,
            password_hash=row.password,
            content=row.content,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_daily_photo(self, row: DailyPhotoRow) -> DailyPhotoRecord:
        return DailyPhotoRecord(
            id=row.id,
            date=row.date,
            image_url=row.image_url,
            uploaded_by=row.uploaded_by,
            created_at=row.created_at,
        )

    def _to_comment(self, row: CommentRow, username: Optional[str]) -> CommentRecord:
        return CommentRecord(
            id=row.id,
            daily_photo_id=row.daily_photo_id,
            content=row.content,
            user_id=row.user_id,
            created_at=row.created_at,
            username=username,
        )

    def _to_gallery(self, row: GalleryRow) -> GalleryRecord:
        return GalleryRecord(
            id=row.id,
            author_name=row.author_name,
            title=row.title or "",
            image_url=row.image_url,
            user_id=row.user_id,
            password_hash=row.password,
            created_at=row.created_at,
        )

    # accounts

    def create_user(self, username: str, password_hash: str) -> UserRecord:
        with self.Session() as session:
            row = UserRow(username=username, password=password_hash)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise Conflict("User already exists") from exc
            session.refresh(row)
            return self._to_user(row)

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.username == username)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_user(row) if row else None

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return
            row.password = password_hash
            session.commit()

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
        with self.Session() as session:
            row = PostRow(
                title=title,
                content=content,
                image_url=image_urls[0] if image_urls else None,
                images=list(image_urls),
                author_name=author_name,
                user_id=user_id,
                created_at=created_at or utc_timestamp(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_post(row)

    def list_posts(self) -> List[PostRecord]:
        with self.Session() as session:
            stmt = select(PostRow).order_by(PostRow.created_at.desc(), PostRow.id.desc())
            return [self._to_post(row) for row in session.execute(stmt).scalars()]

    def list_posts_by_date(self, date: str) -> List[PostRecord]:
        with self.Session() as session:
            stmt = (
                select(PostRow)
                .where(func.substr(PostRow.created_at, 1, 10) == date)
                .order_by(PostRow.created_at.desc(), PostRow.id.desc())
            )
            return [self._to_post(row) for row in session.execute(stmt).scalars()]

    def count_posts_by_date(self) -> Dict[str, int]:
        day = func.substr(PostRow.created_at, 1, 10)
        with self.Session() as session:
            stmt = select(day, func.count(PostRow.id)).group_by(day)
            return {post_date: count for post_date, count in session.execute(stmt)}

    # daily words

    def get_daily_word(self, word_id: int) -> Optional[DailyWordRecord]:
        with self.Session() as session:
            row = session.get(DailyWordRow, word_id)
            return self._to_daily_word(row) if row else None

    def get_daily_word_by_date(self, date: str) -> Optional[DailyWordRecord]:
        with self.Session() as session:
            stmt = select(DailyWordRow).where(DailyWordRow.date == date)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_daily_word(row) if row else None

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
        now = utc_timestamp()
        with self.Session() as session:
            row = DailyWordRow(
                date=date,
                title=title,
                passage=passage,
                content=content,
                author_name=author_name,
                password=password_hash,
                image_url=image_url or (image_urls[0] if image_urls else None),
                file_url=file_url,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            try:
                session.flush()
                session.add_all(
                    DailyWordImageRow(daily_word_id=row.id, image_url=url, sort_order=order)
                    for order, url in enumerate(image_urls)
                )
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise Conflict(f"A daily word already exists for {date}") from exc
            session.refresh(row)
            return self._to_daily_word(row)

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
        with self.Session() as session:
            row = session.get(DailyWordRow, word_id)
            if not row:
                return None
            row.title = title
            row.passage = passage
            row.content = content
            row.author_name = author_name
            row.image_url = image_url
            row.file_url = file_url
            row.updated_at = utc_timestamp()
            session.commit()
            session.refresh(row)
            return self._to_daily_word(row)

    def delete_daily_word(self, word_id: int) -> bool:
        with self.Session() as session:
            row = session.get(DailyWordRow, word_id)
            if not row:
                return False
            session.execute(
                delete(DailyWordImageRow).where(
                    DailyWordImageRow.daily_word_id == word_id
                )
            )
            session.delete(row)
            session.commit()
            return True

    def list_daily_word_dates(self) -> List[str]:
        with self.Session() as session:
            stmt = select(DailyWordRow.date).order_by(DailyWordRow.date)
            return list(session.execute(stmt).scalars())

    def list_daily_word_images(self, word_id: int) -> List[ImageRecord]:
        with self.Session() as session:
            stmt = (
                select(DailyWordImageRow)
                .where(DailyWordImageRow.daily_word_id == word_id)
                .order_by(DailyWordImageRow.sort_order.asc(), DailyWordImageRow.id.asc())
            )
            return [self._to_image(row) for row in session.execute(stmt).scalars()]

    def append_daily_word_images(
        self, word_id: int, image_urls: List[str]
    ) -> List[ImageRecord]:
        if not image_urls:
            return []
        with self.Session() as session:
            if session.get(DailyWordRow, word_id) is None:
                raise NotFound(f"Daily word {word_id} no longer exists")
            current_max = session.execute(
                select(func.max(DailyWordImageRow.sort_order)).where(
                    DailyWordImageRow.daily_word_id == word_id
                )
            ).scalar()
            start = 0 if current_max is None else current_max + 1
            rows = [
                DailyWordImageRow(
                    daily_word_id=word_id, image_url=url, sort_order=start + offset
                )
                for offset, url in enumerate(image_urls)
            ]
            session.add_all(rows)
            try:
                session.commit()
            except IntegrityError as exc:
                # Parent deleted between the check and the insert.
                session.rollback()
                raise NotFound(f"Daily word {word_id} no longer exists") from exc
            for row in rows:
                session.refresh(row)
            return [self._to_image(row) for row in rows]

    def delete_daily_word_images(self, word_id: int, image_ids: Iterable[int]) -> int:
        ids = list(set(image_ids))
        if not ids:
            return 0
        with self.Session() as session:
            result = session.execute(
                delete(DailyWordImageRow).where(
                    DailyWordImageRow.id.in_(ids),
                    DailyWordImageRow.daily_word_id == word_id,
                )
            )
            session.commit()
            return result.rowcount or 0

    # word shares

    def create_word_share(
        self, *, date: str, author_name: str, password_hash: str, content: str
    ) -> WordShareRecord:
        now = utc_timestamp()
        with self.Session() as session:
            row = WordShareRow(
                date=date,
                author_name=author_name,
                password=password_hash,
                content=content,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_word_share(row)

    def get_word_share(self, share_id: int) -> Optional[WordShareRecord]:
        with self.Session() as session:
            row = session.get(WordShareRow, share_id)
            return self._to_word_share(row) if row else None

    def list_word_shares_by_date(self, date: str) -> List[WordShareRecord]:
        with self.Session() as session:
            stmt = (
                select(WordShareRow)
                .where(WordShareRow.date == date)
                .order_by(WordShareRow.created_at.asc(), WordShareRow.id.asc())
            )
            return [self._to_word_share(row) for row in session.execute(stmt).scalars()]

    def update_word_share(self, share_id: int, content: str) -> Optional[WordShareRecord]:
        with self.Session() as session:
            row = session.get(WordShareRow, share_id)
            if not row:
                return None
            row.content = content
            row.updated_at = utc_timestamp()
            session.commit()
            session.refresh(row)
            return self._to_word_share(row)

    def delete_word_share(self, share_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(delete(WordShareRow).where(WordShareRow.id == share_id))
            session.commit()
            return bool(result.rowcount)

    def count_word_shares_by_date(self) -> Dict[str, int]:
        with self.Session() as session:
            stmt = select(WordShareRow.date, func.count(WordShareRow.id)).group_by(
                WordShareRow.date
            )
            return {date: count for date, count in session.execute(stmt)}

    # daily photos and comments

    def replace_daily_photo(
        self, *, date: str, image_url: str, uploaded_by: Optional[int]
    ) -> DailyPhotoRecord:
        with self.Session() as session:
            # Delete by date rather than by a previously loaded row, which a
            # concurrent replace may already have removed.
            previous = select(DailyPhotoRow.id).where(DailyPhotoRow.date == date)
            session.execute(
                delete(CommentRow).where(CommentRow.daily_photo_id.in_(previous))
            )
            session.execute(delete(DailyPhotoRow).where(DailyPhotoRow.date == date))
            row = DailyPhotoRow(date=date, image_url=image_url, uploaded_by=uploaded_by)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise Conflict(f"A daily photo already exists for {date}") from exc
            session.refresh(row)
            return self._to_daily_photo(row)

    def get_daily_photo(self, photo_id: int) -> Optional[DailyPhotoRecord]:
        with self.Session() as session:
            row = session.get(DailyPhotoRow, photo_id)
            return self._to_daily_photo(row) if row else None

    def get_daily_photo_by_date(self, date: str) -> Optional[DailyPhotoRecord]:
        with self.Session() as session:
            stmt = select(DailyPhotoRow).where(DailyPhotoRow.date == date)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_daily_photo(row) if row else None

    def count_comments_by_photo_date(self) -> Dict[str, int]:
        with self.Session() as session:
            stmt = (
                select(DailyPhotoRow.date, func.count(CommentRow.id))
                .select_from(DailyPhotoRow)
                .outerjoin(CommentRow, CommentRow.daily_photo_id == DailyPhotoRow.id)
                .group_by(DailyPhotoRow.date, DailyPhotoRow.id)
            )
            return {date: count for date, count in session.execute(stmt)}

    def create_comment(
        self, *, daily_photo_id: int, content: str, user_id: int
    ) -> CommentRecord:
        with self.Session() as session:
            row = CommentRow(daily_photo_id=daily_photo_id, content=content, user_id=user_id)
            session.add(row)
            session.commit()
            session.refresh(row)
            user = session.get(UserRow, user_id)
            return self._to_comment(row, user.username if user else None)

    def get_comment(self, comment_id: int) -> Optional[CommentRecord]:
        with self.Session() as session:
            stmt = (
                select(CommentRow, UserRow.username)
                .outerjoin(UserRow, UserRow.id == CommentRow.user_id)
                .where(CommentRow.id == comment_id)
            )
            result = session.execute(stmt).first()
            if not result:
                return None
            row, username = result
            return self._to_comment(row, username)

    def list_comments(self, daily_photo_id: int) -> List[CommentRecord]:
        with self.Session() as session:
            stmt = (
                select(CommentRow, UserRow.username)
                .join(UserRow, UserRow.id == CommentRow.user_id)
                .where(CommentRow.daily_photo_id == daily_photo_id)
                .order_by(CommentRow.created_at.asc(), CommentRow.id.asc())
            )
            return [self._to_comment(row, username) for row, username in session.execute(stmt)]

    def delete_comment(self, comment_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(delete(CommentRow).where(CommentRow.id == comment_id))
            session.commit()
            return bool(result.rowcount)

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
        with self.Session() as session:
            row = GalleryRow(
                author_name=author_name,
                title=title,
                image_url=image_url,
                user_id=user_id,
                password=password_hash,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_gallery(row)

    def get_gallery_photo(self, photo_id: int) -> Optional[GalleryRecord]:
        with self.Session() as session:
            row = session.get(GalleryRow, photo_id)
            return self._to_gallery(row) if row else None

    def list_gallery(self) -> List[GalleryRecord]:
        with self.Session() as session:
            stmt = select(GalleryRow).order_by(
                GalleryRow.created_at.desc(), GalleryRow.id.desc()
            )
            return [self._to_gallery(row) for row in session.execute(stmt).scalars()]

    def delete_gallery_photo(self, photo_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(delete(GalleryRow).where(GalleryRow.id == photo_id))
            session.commit()
            return bool(result.rowcount)
