"""Music library backed by a JSON metadata file and a directory of tracks."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Tuple

from ..config import AppConfig
from .errors import RecordNotFoundError, UnsupportedMediaError
from .jsonstore import JsonArrayFile
from .media import AUDIO_CONTENT_TYPES, copy_limited, find_media_file, resolve_upload_extension
from .naming import iso_timestamp, millisecond_id, sanitize_title, title_from_filename, unique_id


LOGGER = logging.getLogger(__name__)

MUSIC_URL_PREFIX = "/api/music/"
LEGACY_MUSIC_PREFIX = "/music/"
DEFAULT_TITLE = "Untitled"
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_ARTIST = "Unknown Artist"
SAMPLE_ARTIST = "Sample Music"
AUDIO_EXTENSIONS = tuple(suffix.lstrip(".") for suffix in AUDIO_CONTENT_TYPES)


@dataclass
class TrackRecord:
    id: str
    title: str
    artist: str
    path: str
    filename: str
    mood: str = ""
    uploaded: str = ""

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TrackRecord":
        path = str(payload.get("path") or "")
        filename = str(payload.get("filename") or "") or PurePosixPath(path).name
        return cls(
            id=str(payload.get("id") or f"track-{filename}"),
            title=str(payload.get("title") or UNKNOWN_TITLE),
            artist=str(payload.get("artist") or UNKNOWN_ARTIST),
            path=path,
            filename=filename,
            mood=str(payload.get("mood") or ""),
            uploaded=str(payload.get("uploaded") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "mood": self.mood,
            "filename": self.filename,
            "path": self.path,
            "uploaded": self.uploaded,
        }


def canonical_track_path(path: Optional[str], filename: Optional[str]) -> str:
    """Return the ``/api/music/<filename>`` form of a stored track path."""

    path = path or ""
    if path.startswith(MUSIC_URL_PREFIX):
        return path
    if path.startswith(LEGACY_MUSIC_PREFIX):
        return f"/api{path}"
    name = filename or PurePosixPath(path).name
    return f"{MUSIC_URL_PREFIX}{name}"


class MusicLibrary:
    """List, upload, import and locate tracks."""

    def __init__(
        self,
        config: AppConfig,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> None:
        self._config = config
        self._root = config.music_root
        self._store = JsonArrayFile(
            config.metadata_file, label="music", event_emitter=event_emitter
        )
        self._search_roots: Tuple[Path, ...] = (self._root, *config.legacy_music_roots)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def store(self) -> JsonArrayFile:
        return self._store

    def configure_event_emitter(self, emitter: Optional[Callable[..., None]]) -> None:
        self._store.configure_event_emitter(emitter)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_tracks(self, mood: Optional[str] = None) -> List[TrackRecord]:
        tracks = [
            TrackRecord.from_dict(item)
            for item in self._store.read()
            if item.get("path") or item.get("filename")
        ]
        wanted = (mood or "").strip().lower()
        if wanted:
            tracks = [track for track in tracks if track.mood.lower() == wanted]
        return tracks

    def get_track(self, track_id: str) -> Optional[TrackRecord]:
        for track in self.list_tracks():
            if track.id == track_id:
                return track
        return None

    def resolve_file(self, filename: str) -> Path:
        """Locate *filename* in the music directory or a legacy music root."""

        try:
            return find_media_file(filename, self._search_roots)
        except RecordNotFoundError:
            raise RecordNotFoundError("Music file not found") from None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_track(
        self,
        source: BinaryIO,
        *,
        filename: Optional[str],
        title: Optional[str] = None,
        artist: Optional[str] = None,
        mood: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> TrackRecord:
        """Store an uploaded audio file and append it to the metadata."""

        extension = resolve_upload_extension(filename, content_type, AUDIO_EXTENSIONS)
        if extension is None:
            raise UnsupportedMediaError(
                f"Invalid file type: {content_type or filename or 'unknown'}. "
                "Please upload a supported audio file (MP3, OGG, WAV, etc.)."
            )

        title = (title or "").strip() or DEFAULT_TITLE
        artist = (artist or "").strip() or UNKNOWN_ARTIST
        mood = (mood or "").strip()

        self._root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{millisecond_id()}_{sanitize_title(title)}.{extension}"
        target = self._root / stored_name
        copy_limited(source, target, limit=self._config.max_music_bytes)
        LOGGER.info("Saved music file %s", target)

        def _append(items: List[Dict[str, Any]]) -> TrackRecord:
            record = TrackRecord(
                id=unique_id({str(item.get("id")) for item in items}),
                title=title,
                artist=artist,
                mood=mood,
                filename=stored_name,
                path=f"{MUSIC_URL_PREFIX}{stored_name}",
                uploaded=iso_timestamp(),
            )
            items.append(record.to_dict())
            return record

        try:
            return self._store.update(_append)
        except Exception:
            target.unlink(missing_ok=True)
            raise

    def normalize_paths(self) -> int:
        """Rewrite track paths to ``/api/music/<filename>``; return the count fixed."""

        items = self._store.read()
        fixed = 0
        for item in items:
            path = item.get("path")
            if not path or str(path).startswith(MUSIC_URL_PREFIX):
                continue
            item["path"] = canonical_track_path(str(path), item.get("filename"))
            fixed += 1

        if fixed:
            self._store.write(items)
            LOGGER.info("Fixed %s music path(s) in %s", fixed, self._store.path)
        else:
            LOGGER.debug("All music paths already canonical")
        return fixed

    def import_seed_tracks(self) -> int:
        """Copy ``*.mp3`` files from the legacy music roots into the library."""

        def _import(items: List[Dict[str, Any]]) -> int:
            known = {str(item.get("filename")) for item in items if item.get("filename")}
            taken = {str(item.get("id")) for item in items}
            added = 0
            for legacy_root in self._config.legacy_music_roots:
                if not legacy_root.is_dir():
                    continue
                for source in sorted(legacy_root.glob("*.mp3")):
                    if source.name in known:
                        continue
                    destination = self._root / source.name
                    if destination.exists():
                        continue
                    shutil.copyfile(source, destination)
                    record = TrackRecord(
                        id=unique_id(taken),
                        title=title_from_filename(source.name),
                        artist=SAMPLE_ARTIST,
                        filename=source.name,
                        path=f"{MUSIC_URL_PREFIX}{source.name}",
                        uploaded=iso_timestamp(),
                    )
                    taken.add(record.id)
                    known.add(source.name)
                    items.append(record.to_dict())
                    added += 1
            return added

        if not any(root.is_dir() for root in self._config.legacy_music_roots):
            return 0

        self._root.mkdir(parents=True, exist_ok=True)
        added = self._store.update(_import)
        if added:
            LOGGER.info("Added %s sample music file(s) to the library", added)
        return added


__all__ = [
    "AUDIO_EXTENSIONS",
    "MUSIC_URL_PREFIX",
    "MusicLibrary",
    "TrackRecord",
    "canonical_track_path",
]
