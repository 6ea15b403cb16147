"""Images attached to shayari entries."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from ..config import AppConfig
from .errors import UnsupportedMediaError
from .media import IMAGE_CONTENT_TYPES, copy_limited, find_media_file
from .naming import extension_of, millisecond_id


LOGGER = logging.getLogger(__name__)

UPLOADS_URL_PREFIX = "/uploads/"
IMAGE_EXTENSIONS = tuple(suffix.lstrip(".") for suffix in IMAGE_CONTENT_TYPES)


class ImageStore:
    """Save uploaded images and locate them again for serving."""

    def __init__(self, config: AppConfig) -> None:
        self._root = config.uploads_root
        self._limit = config.max_image_bytes
        self._search_roots: Tuple[Path, ...] = (self._root, *config.legacy_upload_roots)

    @property
    def root(self) -> Path:
        return self._root

    def save(self, filename: Optional[str], source: BinaryIO) -> str:
        """Persist *source* and return its public ``/uploads/<name>`` path."""

        extension = extension_of(filename, "jpg")
        if extension not in IMAGE_EXTENSIONS:
            raise UnsupportedMediaError(f"Unsupported image type: .{extension}")

        self._root.mkdir(parents=True, exist_ok=True)
        stem = millisecond_id()
        target = self._root / f"{stem}.{extension}"
        sequence = 1
        while target.exists():
            target = self._root / f"{stem}-{sequence}.{extension}"
            sequence += 1

        copy_limited(source, target, limit=self._limit)
        LOGGER.info("Saved uploaded image %s", target.name)
        return f"{UPLOADS_URL_PREFIX}{target.name}"

    def resolve(self, filename: str) -> Path:
        return find_media_file(filename, self._search_roots)


__all__ = ["IMAGE_EXTENSIONS", "ImageStore", "UPLOADS_URL_PREFIX"]
