"""Exceptions raised by the diary services."""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised when user supplied data cannot be stored."""


class RecordNotFoundError(LookupError):
    """Raised when a shayari entry, track or media file does not exist."""


class UnsupportedMediaError(ValidationError):
    """Raised for uploads whose type is not accepted."""


class UploadTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"File is too large ({round(size / (1024 * 1024))}MB). "
            f"Maximum size is {round(limit / (1024 * 1024))}MB."
        )


__all__ = [
    "RecordNotFoundError",
    "UnsupportedMediaError",
    "UploadTooLargeError",
    "ValidationError",
]
