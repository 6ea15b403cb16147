"""Configuration loading utilities for the Shayari Diary application."""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple


LOGGER = logging.getLogger(__name__)


_PERMISSION_SENTINEL = ".shayari_diary_write_check"

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_MUSIC_BYTES = 25 * 1024 * 1024


def _ensure_writable_directory(path: Path) -> bool:
    """Return ``True`` if *path* can be created and written to."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    test_file = path / _PERMISSION_SENTINEL
    try:
        with test_file.open("w", encoding="utf-8") as handle:
            handle.write("ok")
    except OSError:
        return False
    finally:
        with contextlib.suppress(OSError):
            test_file.unlink()

    return True


def _select_writable_directory(
    preferred: Path,
    *,
    label: str,
    fallbacks: Iterable[Path] = (),
) -> Tuple[Path, bool]:
    """Return a usable directory based on ``preferred`` and ``fallbacks``.

    The first writable candidate wins. The flag in the returned tuple tells the
    caller whether a fallback was used. When nothing can be prepared the
    preferred path is returned and the bootstrapper reports the failure.
    """

    preferred = preferred.resolve()
    if _ensure_writable_directory(preferred):
        return preferred, False

    for fallback in fallbacks:
        candidate = fallback.resolve()
        if candidate == preferred:
            continue
        if _ensure_writable_directory(candidate):
            LOGGER.warning(
                "Preferred %s directory '%s' is not writable; using fallback '%s'.",
                label,
                preferred,
                candidate,
            )
            return candidate, True

    LOGGER.warning(
        "%s directory '%s' is not writable and no fallback is available.",
        label.capitalize(),
        preferred,
    )
    return preferred, False


def _relocate(path: Path, *, preferred_root: Path, actual_root: Path) -> Path:
    """Move *path* under *actual_root* when it lived under *preferred_root*."""

    try:
        relative = path.relative_to(preferred_root)
    except ValueError:
        return path
    return (actual_root / relative).resolve()


@dataclass(frozen=True)
class AppConfig:
    """Runtime paths and limits for the diary and its music library."""

    storage_root: Path
    data_file: Path
    uploads_root: Path
    music_root: Path
    legacy_music_roots: Tuple[Path, ...] = ()
    legacy_upload_roots: Tuple[Path, ...] = ()
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    max_music_bytes: int = DEFAULT_MAX_MUSIC_BYTES

    @property
    def metadata_file(self) -> Path:
        """JSON array indexing the uploaded tracks."""

        return self.music_root / "metadata.json"

    @property
    def transcode_root(self) -> Path:
        return self.music_root / ".transcoded"

    @property
    def settings_file(self) -> Path:
        return self.storage_root / "settings.json"

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        preferred_storage = (base_path / mapping["storage_root"]).resolve()
        storage_fallback = Path.home() / ".shayari_diary" / "storage"
        storage_root, storage_fallback_used = _select_writable_directory(
            preferred_storage,
            label="storage",
            fallbacks=(storage_fallback,),
        )

        data_file = (base_path / mapping.get("data_file", "shayari.json")).resolve()
        preferred_uploads = (base_path / mapping.get("uploads_root", "uploads")).resolve()
        preferred_music = (base_path / mapping.get("music_root", "music")).resolve()

        if storage_fallback_used:
            data_file = _relocate(
                data_file, preferred_root=preferred_storage, actual_root=storage_root
            )
            preferred_uploads = _relocate(
                preferred_uploads, preferred_root=preferred_storage, actual_root=storage_root
            )
            preferred_music = _relocate(
                preferred_music, preferred_root=preferred_storage, actual_root=storage_root
            )

        if not _ensure_writable_directory(data_file.parent):
            fallback_data = (storage_root / data_file.name).resolve()
            LOGGER.warning(
                "Preferred data file location '%s' is not writable; using fallback '%s'.",
                data_file,
                fallback_data,
            )
            data_file = fallback_data

        uploads_root, _ = _select_writable_directory(
            preferred_uploads,
            label="uploads",
            fallbacks=(storage_root / "uploads",),
        )
        music_root, _ = _select_writable_directory(
            preferred_music,
            label="music",
            fallbacks=(storage_root / "music",),
        )

        legacy_music_roots = tuple(
            (base_path / entry).resolve() for entry in mapping.get("legacy_music_roots", ())
        )
        legacy_upload_roots = tuple(
            (base_path / entry).resolve() for entry in mapping.get("legacy_upload_roots", ())
        )

        return cls(
            storage_root=storage_root,
            data_file=data_file,
            uploads_root=uploads_root,
            music_root=music_root,
            legacy_music_roots=legacy_music_roots,
            legacy_upload_roots=legacy_upload_roots,
            max_image_bytes=int(mapping.get("max_image_bytes", DEFAULT_MAX_IMAGE_BYTES)),
            max_music_bytes=int(mapping.get("max_music_bytes", DEFAULT_MAX_MUSIC_BYTES)),
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the application configuration from ``config/default.json`` by default."""

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "load_config"]
