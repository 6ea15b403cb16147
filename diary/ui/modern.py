"""A Rich-powered console front-end for browsing the diary."""

from __future__ import annotations

from typing import Optional

from rich import box
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from ..services.music import MusicLibrary
from ..services.storage import ShayariRepository
from .overview import OverviewSnapshot, collect_overview, preview


class ModernUI:
    """Render the diary overview using Rich widgets."""

    def __init__(
        self,
        repository: ShayariRepository,
        library: MusicLibrary,
        *,
        console: Optional[Console] = None,
    ) -> None:
        self._repository = repository
        self._library = library
        self._console = console or Console()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self) -> None:
        snapshot = collect_overview(self._repository, self._library)
        console = self._console

        console.rule("[bold magenta]Shayari Diary Overview")

        if snapshot.entry_count == 0 and snapshot.track_count == 0:
            console.print(
                Panel(
                    "The diary is empty.\n"
                    "Use [bold]python run.py add[/bold] to write your first shayari.",
                    border_style="yellow",
                    box=box.ROUNDED,
                )
            )
            return

        console.print(self._build_entries_table(snapshot))
        console.print(
            Columns(
                [self._build_stats_panel(snapshot), self._build_music_panel(snapshot)],
                expand=True,
                equal=True,
            )
        )
        console.print()
        console.print(
            Text("Tip: pass --style console for the plain layout.", style="dim"),
            justify="center",
        )

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _build_entries_table(snapshot: OverviewSnapshot) -> Table:
        table = Table(title="Shayari", box=box.SIMPLE_HEAVY, expand=True)
        table.add_column("Date", style="dim", no_wrap=True)
        table.add_column("Mood", style="cyan")
        table.add_column("Text")
        table.add_column("Author", style="green")
        for record in snapshot.entries:
            text = Text(preview(record.text))
            if record.image_path:
                text.append("  🖼️", style="dim")
            table.add_row(record.date[:10], record.mood, text, record.author)
        if not snapshot.entries:
            table.add_row("", "", Text("No entries yet", style="dim"), "")
        return table

    @staticmethod
    def _build_stats_panel(snapshot: OverviewSnapshot) -> Panel:
        metrics = Table.grid(expand=True, padding=(0, 1))
        metrics.add_column(style="dim")
        metrics.add_column(justify="right", style="bold")
        metrics.add_row("Entries", str(snapshot.entry_count))
        metrics.add_row("Authors", str(len(snapshot.author_counts)))
        metrics.add_row("Oldest", (snapshot.oldest or "–")[:10])
        metrics.add_row("Newest", (snapshot.newest or "–")[:10])

        moods = Table.grid(expand=True, padding=(0, 1))
        moods.add_column(style="dim")
        moods.add_column(justify="right", style="bold")
        for mood, count in snapshot.mood_counts.items():
            moods.add_row(mood, str(count))

        body = Group(metrics, Rule(style="magenta"), moods)
        return Panel(body, title="At a glance", border_style="magenta", box=box.ROUNDED)

    @staticmethod
    def _build_music_panel(snapshot: OverviewSnapshot) -> Panel:
        tracks = Table.grid(expand=True, padding=(0, 1))
        tracks.add_column()
        tracks.add_column(style="dim")
        for track in snapshot.tracks:
            label = Text(track.title, style="bold")
            label.append(f"  {track.artist}", style="green")
            tracks.add_row(label, track.mood)
        if not snapshot.tracks:
            tracks.add_row(Text("No tracks yet", style="dim"), "")
        return Panel(tracks, title="🎧 Music", border_style="cyan", box=box.ROUNDED)


__all__ = ["ModernUI"]
