"""Helpers for identifiers, timestamps and stored file names."""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Container, Optional

__all__ = [
    "extension_of",
    "iso_timestamp",
    "millisecond_id",
    "safe_filename",
    "sanitize_title",
    "title_from_filename",
    "unique_id",
]


def millisecond_id(now: Optional[float] = None) -> str:
    """Return the current epoch time in milliseconds as a string."""

    seconds = time.time() if now is None else now
    return str(int(seconds * 1000))


def unique_id(taken: Container[str], *, now: Optional[float] = None) -> str:
    """Return a millisecond identifier not contained in *taken*."""

    candidate = int(millisecond_id(now))
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with milliseconds and a ``Z`` suffix."""

    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    stamp = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def sanitize_title(value: str) -> str:
    """Lowercase *value* and replace anything outside ``a-z0-9`` with ``_``."""

    return re.sub(r"[^a-z0-9]", "_", value.lower())


def safe_filename(value: str) -> str:
    """Strip traversal sequences and path separators from a requested name."""

    return value.replace("..", "").replace("/", "").replace("\\", "").strip()


def extension_of(filename: Optional[str], default: str) -> str:
    """Return the lowercase extension of *filename* without the dot."""

    if filename and "." in filename:
        suffix = filename.rsplit(".", 1)[-1].strip().lower()
        if suffix and "/" not in suffix:
            return suffix
    return default


def title_from_filename(filename: str) -> str:
    """Derive a display title from a sample track name like ``01-my_song.mp3``."""

    stem = PurePosixPath(filename).stem
    stem = re.sub(r"^\d+-", "", stem)
    return re.sub(r"[_-]", " ", stem)
