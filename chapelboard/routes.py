"""
HTTP routes for the bulletin API.

Handlers stay thin: they unpack the request, store uploads, and hand off to
the service modules, which raise ``ChapelboardError`` subclasses that the
app turns into ``{"message": ...}`` responses.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Response, UploadFile

from chapelboard import (
    accounts,
    calendar_summary,
    daily_photos,
    daily_words,
    gallery,
    posts,
    word_shares,
)
from chapelboard.config import Settings, get_settings
from chapelboard.daily_words import DailyWordSubmission
from chapelboard.db import DbClient
from chapelboard.dependencies import (
    get_current_user,
    get_db_client,
    get_optional_user,
    get_storage_client,
)
from chapelboard.errors import ChapelboardError, InvalidInput, ServerError
from chapelboard.schemas import (
    CalendarSummaryResponse,
    ChangePasswordPayload,
    CommentCreatePayload,
    CommentListResponse,
    CommentResponse,
    CountsResponse,
    CredentialsPayload,
    DailyPhotoResponse,
    DailyWordResponse,
    GalleryListResponse,
    GalleryResponse,
    MessageResponse,
    OptionalPasswordPayload,
    PasswordPayload,
    PostListResponse,
    PostResponse,
    RegisterResponse,
    ResetPasswordPayload,
    TokenResponse,
    WordShareCreatePayload,
    WordShareListResponse,
    WordShareResponse,
    WordShareUpdatePayload,
)
from chapelboard.security import SessionUser
from chapelboard.storage import StorageClient
from chapelboard.validation import parse_id_list

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMAGES_PER_REQUEST = 10


async def _save_uploads(
    storage: StorageClient, uploads: Optional[List[UploadFile]]
) -> List[str]:
    """Persist each non-empty upload and return the URLs, in upload order."""
    # Browsers send an empty part with no filename when nothing was picked.
    picked = [upload for upload in uploads or [] if upload and upload.filename]
    if len(picked) > MAX_IMAGES_PER_REQUEST:
        raise InvalidInput(f"At most {MAX_IMAGES_PER_REQUEST} images per request")
    urls = []
    for upload in picked:
        urls.append(storage.save_upload(upload.filename, await upload.read()))
    return urls


async def _save_upload(
    storage: StorageClient, upload: Optional[UploadFile]
) -> Optional[str]:
    urls = await _save_uploads(storage, [upload] if upload else [])
    return urls[0] if urls else None


def _discard_uploads(storage: StorageClient, urls: List[Optional[str]]) -> None:
    """Remove files stored for a request that was then rejected."""
    for url in urls:
        if not url:
            continue
        try:
            storage.delete(url)
        except ServerError:
            logger.warning("Leaving orphaned upload %s", url)


# Accounts


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    payload: CredentialsPayload,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    user = accounts.register(
        db, settings, username=payload.username, password=payload.password
    )
    return RegisterResponse(message="User registered successfully", userId=user.id)


@router.post("/login", response_model=TokenResponse)
def login(
    payload: CredentialsPayload,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    token = accounts.login(db, settings, username=payload.username, password=payload.password)
    return TokenResponse(token=token)


@router.put("/users/password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordPayload,
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    accounts.change_password(
        db,
        settings,
        user,
        current_password=payload.currentPassword,
        new_password=payload.newPassword,
    )
    return MessageResponse(message="Password updated successfully")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordPayload,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    accounts.reset_password(
        db, settings, username=payload.username, new_password=payload.newPassword
    )
    return MessageResponse(message="Password reset successfully")


# Posts


@router.get("/posts", response_model=PostListResponse)
def list_posts(
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return PostListResponse(data=posts.list_posts(db))


@router.get("/posts/counts", response_model=CountsResponse)
def post_counts(db: DbClient = Depends(get_db_client)):
    return CountsResponse(data=posts.count_posts_by_date(db))


@router.get("/posts/date/{date}", response_model=PostListResponse)
def list_posts_by_date(date: str, db: DbClient = Depends(get_db_client)):
    return PostListResponse(data=posts.list_posts_by_date(db, date))


@router.post("/posts", response_model=PostResponse, status_code=201)
async def create_post(
    title: str = Form(""),
    content: str = Form(""),
    createdAt: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    if not title.strip() or not content.strip():
        raise InvalidInput("Title and content are required")
    image_urls = await _save_uploads(storage, images)
    try:
        post = posts.create_post(
            db,
            user,
            title=title,
            content=content,
            image_urls=image_urls,
            created_at=createdAt,
        )
    except ChapelboardError:
        _discard_uploads(storage, image_urls)
        raise
    return PostResponse(message="Post created successfully", data=post)


# Daily words


@router.get("/daily-words/{date}", response_model=DailyWordResponse)
def get_daily_word(date: str, db: DbClient = Depends(get_db_client)):
    return DailyWordResponse(data=daily_words.get_daily_word(db, date))


@router.post("/daily-words", response_model=DailyWordResponse)
async def upsert_daily_word(
    response: Response,
    date: str = Form(""),
    title: str = Form(""),
    passage: str = Form(""),
    content: str = Form(""),
    authorName: str = Form(""),
    password: str = Form(""),
    deleteImages: Optional[str] = Form(None),
    image: Optional[List[UploadFile]] = File(None),
    file: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    submission = DailyWordSubmission(
        date=date,
        title=title,
        passage=passage,
        content=content,
        author_name=authorName,
        password=password,
        delete_image_ids=parse_id_list(deleteImages),
    )
    # Reject incomplete submissions before anything is written to storage.
    if not all([date, title, content, authorName, password]):
        raise InvalidInput("All fields are required")
    submission.image_urls = await _save_uploads(storage, image)
    submission.file_url = await _save_upload(storage, file)

    try:
        record, created = daily_words.upsert_daily_word(db, settings, submission)
    except ChapelboardError:
        _discard_uploads(storage, [*submission.image_urls, submission.file_url])
        raise
    if created:
        response.status_code = 201
        return DailyWordResponse(message="Daily word created", data=record)
    return DailyWordResponse(message="Daily word updated", data=record)


@router.delete("/daily-words/{date}", response_model=MessageResponse)
def delete_daily_word(
    date: str,
    payload: PasswordPayload,
    db: DbClient = Depends(get_db_client),
):
    daily_words.delete_daily_word(db, date, payload.password)
    return MessageResponse(message=f"Daily word for {date} deleted")


# Word shares


@router.get("/word-shares/{date}", response_model=WordShareListResponse)
def list_word_shares(date: str, db: DbClient = Depends(get_db_client)):
    return WordShareListResponse(data=word_shares.list_word_shares(db, date))


@router.post("/word-shares", response_model=WordShareResponse, status_code=201)
def create_word_share(
    payload: WordShareCreatePayload,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    share = word_shares.create_word_share(
        db,
        settings,
        date=payload.date,
        author_name=payload.authorName,
        password=payload.password,
        content=payload.content,
    )
    return WordShareResponse(message="Share created", data=share)


@router.put("/word-shares/{share_id}", response_model=WordShareResponse)
def update_word_share(
    share_id: int,
    payload: WordShareUpdatePayload,
    db: DbClient = Depends(get_db_client),
):
    share = word_shares.update_word_share(
        db, share_id, password=payload.password, content=payload.content
    )
    return WordShareResponse(message="Share updated", data=share)


@router.delete("/word-shares/{share_id}", response_model=MessageResponse)
def delete_word_share(
    share_id: int,
    payload: PasswordPayload,
    db: DbClient = Depends(get_db_client),
):
    word_shares.delete_word_share(db, share_id, password=payload.password)
    return MessageResponse(message="Share deleted")


# Daily photos and comments


@router.post("/daily-photos", response_model=DailyPhotoResponse, status_code=201)
async def upload_daily_photo(
    date: str = Form(""),
    image: Optional[UploadFile] = File(None),
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    if not image or not image.filename:
        raise InvalidInput("Image is required")
    if not date:
        raise InvalidInput("Date is required")
    image_url = await _save_upload(storage, image)
    try:
        photo = daily_photos.upload_daily_photo(
            db, settings, user, date=date, image_url=image_url
        )
    except ChapelboardError:
        _discard_uploads(storage, [image_url])
        raise
    return DailyPhotoResponse(message="Daily photo uploaded successfully", data=photo)


@router.get("/daily-photos/counts/all", response_model=CountsResponse)
def daily_photo_comment_counts(
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return CountsResponse(data=calendar_summary.photo_comment_counts(db))


@router.get("/daily-photos/{date}", response_model=DailyPhotoResponse)
def get_daily_photo(
    date: str,
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return DailyPhotoResponse(data=daily_photos.get_daily_photo(db, date))


@router.post("/comments", response_model=CommentResponse, status_code=201)
def create_comment(
    payload: CommentCreatePayload,
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    comment = daily_photos.create_comment(
        db, user, daily_photo_id=payload.dailyPhotoId, content=payload.content
    )
    return CommentResponse(message="Comment created successfully", data=comment)


@router.get("/comments/{daily_photo_id}", response_model=CommentListResponse)
def list_comments(
    daily_photo_id: int,
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return CommentListResponse(data=daily_photos.list_comments(db, daily_photo_id))


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
def delete_comment(
    comment_id: int,
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    daily_photos.delete_comment(db, user, comment_id)
    return MessageResponse(message="Comment deleted successfully")


# Calendar


@router.get("/calendar/summary", response_model=CalendarSummaryResponse)
def calendar_summary_view(db: DbClient = Depends(get_db_client)):
    return CalendarSummaryResponse(data=calendar_summary.summarize(db))


# Gallery


@router.get("/gallery", response_model=GalleryListResponse)
def list_gallery(db: DbClient = Depends(get_db_client)):
    return GalleryListResponse(data=gallery.list_gallery(db))


@router.post("/gallery", response_model=GalleryResponse, status_code=201)
async def create_gallery_photo(
    title: str = Form(""),
    image: Optional[UploadFile] = File(None),
    user: SessionUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    image_url = await _save_upload(storage, image)
    photo = gallery.create_member_photo(db, user, title=title, image_url=image_url)
    return GalleryResponse(message="Photo added", data=photo)


@router.post("/gallery/anonymous", response_model=GalleryResponse, status_code=201)
async def create_anonymous_gallery_photo(
    authorName: str = Form(""),
    password: str = Form(""),
    title: str = Form(""),
    image: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    if not authorName.strip() or not password:
        raise InvalidInput("All fields are required")
    image_url = await _save_upload(storage, image)
    photo = gallery.create_anonymous_photo(
        db,
        settings,
        author_name=authorName,
        password=password,
        title=title,
        image_url=image_url,
    )
    return GalleryResponse(message="Photo added", data=photo)


@router.delete("/gallery/{photo_id}", response_model=MessageResponse)
def delete_gallery_photo(
    photo_id: int,
    payload: Optional[OptionalPasswordPayload] = Body(None),
    user: Optional[SessionUser] = Depends(get_optional_user),
    db: DbClient = Depends(get_db_client),
):
    gallery.delete_photo(
        db, photo_id, user=user, password=payload.password if payload else None
    )
    return MessageResponse(message="Photo deleted")
