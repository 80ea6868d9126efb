"""
Pydantic schemas for the bulletin API.

Field names follow the JSON the web client already speaks (camelCase).
None of the response models has a password field, so a hash can never be
serialized even if a dict carrying one reaches the boundary.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# Requests


class CredentialsPayload(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)


class ChangePasswordPayload(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=1)


class ResetPasswordPayload(BaseModel):
    username: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=1)


class WordShareCreatePayload(BaseModel):
    date: str = Field(..., min_length=1)
    authorName: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class WordShareUpdatePayload(BaseModel):
    password: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class PasswordPayload(BaseModel):
    password: str = Field(..., min_length=1)


class OptionalPasswordPayload(BaseModel):
    password: Optional[str] = None


class CommentCreatePayload(BaseModel):
    dailyPhotoId: int
    content: str = Field(..., min_length=1)


# Records


class PostOut(BaseModel):
    id: int
    title: str
    content: str
    imageUrl: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    authorName: Optional[str] = None
    userId: Optional[int] = None
    createdAt: str


class ImageOut(BaseModel):
    id: Optional[int] = None
    imageUrl: str
    sortOrder: int


class DailyWordOut(BaseModel):
    id: int
    date: str
    title: str
    passage: str = ""
    content: str
    authorName: str
    imageUrl: Optional[str] = None
    fileUrl: Optional[str] = None
    createdAt: str
    updatedAt: str
    images: List[ImageOut] = Field(default_factory=list)


class WordShareOut(BaseModel):
    id: int
    date: str
    authorName: str
    content: str
    createdAt: str
    updatedAt: str


class DailyPhotoOut(BaseModel):
    id: int
    date: str
    imageUrl: str
    uploadedBy: Optional[int] = None
    createdAt: str


class CommentOut(BaseModel):
    id: int
    dailyPhotoId: int
    content: str
    userId: int
    username: Optional[str] = None
    createdAt: str


class GalleryOut(BaseModel):
    id: int
    authorName: str
    title: str = ""
    imageUrl: str
    userId: Optional[int] = None
    createdAt: str


class CalendarDay(BaseModel):
    hasWord: bool = False
    shareCount: int = 0


# Envelopes


class MessageResponse(BaseModel):
    message: str


class RegisterResponse(BaseModel):
    message: str
    userId: int


class TokenResponse(BaseModel):
    token: str


class CountsResponse(BaseModel):
    message: str = "success"
    data: Dict[str, int]


class PostResponse(BaseModel):
    message: str
    data: PostOut


class PostListResponse(BaseModel):
    message: str = "success"
    data: List[PostOut]


class DailyWordResponse(BaseModel):
    message: str = "success"
    data: Optional[DailyWordOut] = None


class WordShareResponse(BaseModel):
    message: str
    data: WordShareOut


class WordShareListResponse(BaseModel):
    message: str = "success"
    data: List[WordShareOut]


class DailyPhotoResponse(BaseModel):
    message: str = "success"
    data: Optional[DailyPhotoOut] = None


class CommentResponse(BaseModel):
    message: str
    data: CommentOut


class CommentListResponse(BaseModel):
    message: str = "success"
    data: List[CommentOut]


class CalendarSummaryResponse(BaseModel):
    message: str = "success"
    data: Dict[str, CalendarDay]


class GalleryResponse(BaseModel):
    message: str
    data: GalleryOut


class GalleryListResponse(BaseModel):
    message: str = "success"
    data: List[GalleryOut]
