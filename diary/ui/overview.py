"""Shared helpers for building overview snapshots of the diary and music library."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..services.music import MusicLibrary, TrackRecord
from ..services.storage import ShayariRecord, ShayariRepository


@dataclass
class OverviewSnapshot:
    entries: List[ShayariRecord]
    tracks: List[TrackRecord]
    mood_counts: Dict[str, int]
    author_counts: Dict[str, int]
    oldest: Optional[str]
    newest: Optional[str]

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def track_count(self) -> int:
        return len(self.tracks)


def collect_overview(
    repository: ShayariRepository, library: MusicLibrary
) -> OverviewSnapshot:
    """Aggregate stored entries and tracks into a snapshot for UIs."""

    stats = repository.stats()
    entries = sorted(repository.list_entries(), key=lambda record: record.date, reverse=True)
    return OverviewSnapshot(
        entries=entries,
        tracks=library.list_tracks(),
        mood_counts=dict(
            sorted(stats.mood_counts.items(), key=lambda item: (-item[1], item[0]))
        ),
        author_counts=stats.author_counts,
        oldest=stats.oldest,
        newest=stats.newest,
    )


def preview(text: str, limit: int = 60) -> str:
    """Return the first line of *text*, shortened to *limit* characters."""

    first_line = text.strip().splitlines()[0] if text.strip() else ""
    if len(first_line) <= limit:
        return first_line
    return first_line[: limit - 1].rstrip() + "…"


__all__ = ["OverviewSnapshot", "collect_overview", "preview"]
