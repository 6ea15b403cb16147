"""Plain console overview for terminals without Rich styling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..services.music import MusicLibrary
from ..services.storage import ShayariRepository
from .overview import OverviewSnapshot, collect_overview, preview


@dataclass
class ConsoleSection:
    title: str
    entries: Iterable[str]


class ConsoleUI:
    """Minimal console UI that surfaces stored entries and tracks."""

    def __init__(self, repository: ShayariRepository, library: MusicLibrary) -> None:
        self._repository = repository
        self._library = library

    def run(self) -> None:
        snapshot = collect_overview(self._repository, self._library)

        print("Shayari Diary – Console Overview")
        print("=" * 40)
        for section in self._build_sections(snapshot):
            print(section.title)
            print("-" * len(section.title))
            has_entries = False
            for entry in section.entries:
                has_entries = True
                print(entry)
            if not has_entries:
                print("(empty)")
            print()

    def _build_sections(self, snapshot: OverviewSnapshot) -> Iterable[ConsoleSection]:
        yield ConsoleSection(
            title=f"Shayari ({snapshot.entry_count})",
            entries=(
                f"  [{record.mood}] {preview(record.text)} – {record.author}"
                for record in snapshot.entries
            ),
        )
        yield ConsoleSection(
            title="Moods",
            entries=(f"  {mood}: {count}" for mood, count in snapshot.mood_counts.items()),
        )
        yield ConsoleSection(
            title=f"Music ({snapshot.track_count})",
            entries=(
                f"  {track.title} – {track.artist}" + (f" ({track.mood})" if track.mood else "")
                for track in snapshot.tracks
            ),
        )


__all__ = ["ConsoleUI"]
