from __future__ import annotations

import io

from rich.console import Console

from diary.config import AppConfig
from diary.services.music import MusicLibrary
from diary.services.storage import ShayariRepository
from diary.ui.console import ConsoleUI
from diary.ui.modern import ModernUI
from diary.ui.overview import collect_overview, preview


def _populate(config: AppConfig) -> tuple[ShayariRepository, MusicLibrary]:
    repository = ShayariRepository(config)
    library = MusicLibrary(config)
    repository.add_entry("Hazaron khwahishen aisi", "longing", author="Ghalib")
    repository.add_entry("Dil hi to hai", "longing", author="Ghalib")
    repository.add_entry("Subah ka sitara", "hope")
    library.add_track(io.BytesIO(b"ID3"), filename="raga.mp3", title="Evening Raga", mood="calm")
    return repository, library


def test_collect_overview_orders_moods_by_count(temp_config: AppConfig) -> None:
    repository, library = _populate(temp_config)

    snapshot = collect_overview(repository, library)

    assert snapshot.entry_count == 3
    assert snapshot.track_count == 1
    assert list(snapshot.mood_counts.items()) == [("longing", 2), ("hope", 1)]
    assert snapshot.author_counts["Ghalib"] == 2


def test_preview_truncates_first_line() -> None:
    assert preview("short\nsecond line") == "short"
    assert preview("x" * 80, limit=10) == "xxxxxxxxx…"
    assert preview("   ") == ""


def test_modern_ui_renders_entries_and_tracks(temp_config: AppConfig) -> None:
    repository, library = _populate(temp_config)
    console = Console(record=True, width=140)

    ModernUI(repository, library, console=console).run()

    output = console.export_text()
    assert "Shayari Diary Overview" in output
    assert "Hazaron khwahishen aisi" in output
    assert "Evening Raga" in output
    assert "longing" in output


def test_modern_ui_reports_empty_diary(temp_config: AppConfig) -> None:
    console = Console(record=True, width=100)

    ModernUI(ShayariRepository(temp_config), MusicLibrary(temp_config), console=console).run()

    assert "The diary is empty" in console.export_text()


def test_console_ui_prints_sections(temp_config: AppConfig, capsys) -> None:
    repository, library = _populate(temp_config)

    ConsoleUI(repository, library).run()

    output = capsys.readouterr().out
    assert "Shayari (3)" in output
    assert "longing: 2" in output
    assert "Evening Raga – Unknown Artist (calm)" in output
