"""
Error taxonomy shared by the service layer and the HTTP boundary.

Every error carries the HTTP status it maps to; the app installs a single
handler that renders ``{"message": ...}`` for all of them.
"""

from __future__ import annotations


class ChapelboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ChapelboardError):
    """Missing or malformed required fields."""

    status_code = 400


class Unauthenticated(ChapelboardError):
    """Absent, malformed or expired session token."""

    status_code = 401


class Forbidden(ChapelboardError):
    """Caller is known (or anonymous) but may not touch this record."""

    status_code = 403


class NotFound(ChapelboardError):
    status_code = 404


class Conflict(ChapelboardError):
    """A uniqueness rule was violated (username, per-date singleton)."""

    status_code = 400


class ServerError(ChapelboardError):
    """Storage or hashing library failure."""

    status_code = 500
