"""Shayari entries persisted in a flat JSON file."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..config import AppConfig
from .errors import RecordNotFoundError, ValidationError
from .jsonstore import JsonArrayFile
from .naming import iso_timestamp, unique_id


LOGGER = logging.getLogger(__name__)

DEFAULT_AUTHOR = "Anonymous"

_MISSING = object()


@dataclass
class ShayariRecord:
    id: str
    text: str
    mood: str
    author: str
    date: str
    image_path: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ShayariRecord":
        return cls(
            id=str(payload.get("id") or ""),
            text=str(payload.get("text") or ""),
            mood=str(payload.get("mood") or ""),
            author=str(payload.get("author") or DEFAULT_AUTHOR),
            date=str(payload.get("date") or ""),
            image_path=payload.get("imagePath") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "mood": self.mood,
            "author": self.author,
            "date": self.date,
            "imagePath": self.image_path,
        }


@dataclass
class ShayariStats:
    total_count: int
    mood_counts: Dict[str, int] = field(default_factory=dict)
    author_counts: Dict[str, int] = field(default_factory=dict)
    oldest: Optional[str] = None
    newest: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "moodCounts": dict(self.mood_counts),
            "authorCounts": dict(self.author_counts),
            "dateRange": {"oldest": self.oldest, "newest": self.newest},
        }


def _parse_date(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _require_text(value: Optional[str], label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"Shayari {label} is required")
    return cleaned


class ShayariRepository:
    """CRUD and search helpers over the shayari data file."""

    def __init__(
        self,
        config: AppConfig,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> None:
        self._store = JsonArrayFile(
            config.data_file, label="shayari", event_emitter=event_emitter
        )

    @property
    def store(self) -> JsonArrayFile:
        return self._store

    def configure_event_emitter(self, emitter: Optional[Callable[..., None]]) -> None:
        self._store.configure_event_emitter(emitter)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_entries(self) -> List[ShayariRecord]:
        return [ShayariRecord.from_dict(item) for item in self._store.read()]

    def get_entry(self, entry_id: str) -> Optional[ShayariRecord]:
        for record in self.list_entries():
            if record.id == entry_id:
                return record
        return None

    def search(self, *, mood: Optional[str] = None, text: Optional[str] = None) -> List[ShayariRecord]:
        """Return entries whose mood and text contain the given terms.

        Matching is case-insensitive. When both terms are supplied an entry
        must match both.
        """

        mood_term = (mood or "").strip().lower()
        text_term = (text or "").strip().lower()
        if not mood_term and not text_term:
            raise ValidationError("At least one search parameter (mood or text) is required")

        results = self.list_entries()
        if mood_term:
            results = [record for record in results if mood_term in record.mood.lower()]
        if text_term:
            results = [record for record in results if text_term in record.text.lower()]
        LOGGER.debug(
            "Search mood=%r text=%r matched %s entries", mood_term, text_term, len(results)
        )
        return results

    def stats(self) -> ShayariStats:
        records = self.list_entries()
        mood_counts = Counter(record.mood for record in records)
        author_counts = Counter(record.author for record in records)

        dated = [
            (parsed, record.date)
            for record in records
            if (parsed := _parse_date(record.date)) is not None
        ]
        oldest = min(dated, key=lambda item: item[0])[1] if dated else None
        newest = max(dated, key=lambda item: item[0])[1] if dated else None

        return ShayariStats(
            total_count=len(records),
            mood_counts=dict(mood_counts),
            author_counts=dict(author_counts),
            oldest=oldest,
            newest=newest,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_entry(
        self,
        text: str,
        mood: str,
        author: Optional[str] = None,
        image_path: Optional[str] = None,
    ) -> ShayariRecord:
        cleaned_text = _require_text(text, "text")
        cleaned_mood = _require_text(mood, "mood")

        def _append(items: List[Dict[str, Any]]) -> ShayariRecord:
            taken = {str(item.get("id")) for item in items}
            record = ShayariRecord(
                id=unique_id(taken),
                text=cleaned_text,
                mood=cleaned_mood,
                author=(author or "").strip() or DEFAULT_AUTHOR,
                date=iso_timestamp(),
                image_path=image_path or None,
            )
            items.append(record.to_dict())
            return record

        record = self._store.update(_append)
        LOGGER.info("Added shayari %s (mood=%s)", record.id, record.mood)
        return record

    def update_entry(
        self,
        entry_id: str,
        *,
        text: Optional[str] = None,
        mood: Optional[str] = None,
        author: Optional[str] = None,
        image_path: Any = _MISSING,
    ) -> ShayariRecord:
        """Apply a partial update; ``id`` and ``date`` are never changed.

        Passing ``image_path=None`` explicitly detaches the image.
        """

        cleaned_text = _require_text(text, "text") if text is not None else None
        cleaned_mood = _require_text(mood, "mood") if mood is not None else None

        def _apply(items: List[Dict[str, Any]]) -> ShayariRecord:
            for index, item in enumerate(items):
                if str(item.get("id")) != entry_id:
                    continue
                record = ShayariRecord.from_dict(item)
                if cleaned_text is not None:
                    record.text = cleaned_text
                if cleaned_mood is not None:
                    record.mood = cleaned_mood
                if author is not None:
                    record.author = author.strip() or DEFAULT_AUTHOR
                if image_path is not _MISSING:
                    record.image_path = image_path or None
                items[index] = {**item, **record.to_dict()}
                return record
            raise RecordNotFoundError(f"Shayari with ID {entry_id} not found")

        record = self._store.update(_apply)
        LOGGER.info("Updated shayari %s", entry_id)
        return record

    def remove_entry(self, entry_id: str) -> ShayariRecord:
        def _remove(items: List[Dict[str, Any]]) -> ShayariRecord:
            for index, item in enumerate(items):
                if str(item.get("id")) == entry_id:
                    del items[index]
                    return ShayariRecord.from_dict(item)
            raise RecordNotFoundError(f"Shayari with ID {entry_id} not found")

        record = self._store.update(_remove)
        LOGGER.info("Deleted shayari %s", entry_id)
        return record


__all__ = ["DEFAULT_AUTHOR", "ShayariRecord", "ShayariRepository", "ShayariStats"]
