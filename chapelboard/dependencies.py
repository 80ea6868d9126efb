"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from chapelboard.config import Settings, get_settings
from chapelboard.db import DbClient, InMemoryDbClient
from chapelboard.db_sql import SqlDbClient
from chapelboard.errors import Unauthenticated
from chapelboard.security import SessionUser, decode_access_token
from chapelboard.storage import (
    InMemoryStorageClient,
    LocalDiskStorageClient,
    StorageClient,
)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _storage_client = InMemoryStorageClient(url_prefix=settings.uploads_url_prefix)
    else:
        _storage_client = LocalDiskStorageClient(
            upload_dir=settings.upload_dir,
            url_prefix=settings.uploads_url_prefix,
        )
    return _storage_client


def _extract_token(authorization: Optional[str], x_auth_token: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if x_auth_token:
        return x_auth_token.strip() or None
    return None


def get_optional_user(
    authorization: Optional[str] = Header(None),
    x_auth_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Optional[SessionUser]:
    """Session user if a token was sent; an invalid token is still a 401."""
    token = _extract_token(authorization, x_auth_token)
    if token is None:
        return None
    return decode_access_token(token, settings)


def get_current_user(
    user: Optional[SessionUser] = Depends(get_optional_user),
) -> SessionUser:
    if user is None:
        raise Unauthenticated("No token, authorization denied")
    return user
