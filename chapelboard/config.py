"""
Configuration and settings for the bulletin backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # Database (SQLite file by default, any SQLAlchemy URL works)
    database_url: str = Field(
        default="sqlite:///./chapelboard.db", validation_alias="DATABASE_URL"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="CHAPELBOARD_USE_IN_MEMORY_BACKENDS"
    )

    # Uploaded images and attachments
    upload_dir: str = Field(default="uploads", validation_alias="CHAPELBOARD_UPLOAD_DIR")
    uploads_url_prefix: str = Field(default="/uploads")
    serve_uploads: bool = Field(default=True)

    # Session tokens
    jwt_secret: str = Field(
        default="dev-secret-change-me", validation_alias="CHAPELBOARD_JWT_SECRET"
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_seconds: int = Field(default=3600, ge=60)

    # Password hashing cost
    bcrypt_rounds: int = Field(default=10, ge=10, le=16)

    # "any": any signed-in user may replace the photo of a date.
    # "owner": only the user who uploaded the current photo may replace it.
    daily_photo_replace_policy: Literal["any", "owner"] = Field(
        default="any", validation_alias="CHAPELBOARD_DAILY_PHOTO_REPLACE_POLICY"
    )

    # Reset-by-username has no proof of identity beyond the username.
    allow_username_password_reset: bool = Field(
        default=True, validation_alias="CHAPELBOARD_ALLOW_USERNAME_PASSWORD_RESET"
    )

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
