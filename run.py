"""Entry-point for the Shayari Diary application."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from diary.bootstrap import initialize_app
from diary.logging_utils import DEFAULT_LOG_FORMAT, configure_logging, get_log_file_path
from diary.services.errors import ValidationError
from diary.services.media import AUDIO_CONTENT_TYPES
from diary.services.music import MusicLibrary
from diary.services.storage import ShayariRepository
from diary.ui.console import ConsoleUI
from diary.ui.modern import ModernUI
from diary.web import create_app
from diary.web.server import get_max_upload_bytes


LOGGER = logging.getLogger("shayari_diary.cli")


cli = typer.Typer(add_completion=False, help="Shayari Diary management commands")


def _prepare_logging(storage_root: Path) -> None:
    log_file = get_log_file_path(storage_root)
    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    configure_logging(handlers=[file_handler, stream_handler])


class UIStyle(str, Enum):
    MODERN = "modern"
    CONSOLE = "console"


style_option = typer.Option(
    UIStyle.MODERN,
    "--style",
    "-s",
    help="Select the overview presentation style.",
    show_default=True,
)


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=DEFAULT_HOST, port=DEFAULT_PORT, root_path=None)


def _normalize_root_path(root_path: Optional[str]) -> str:
    if root_path is None:
        return ""
    normalized = root_path.strip()
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized.rstrip("/")


@cli.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, help="Host interface for the web server"),
    port: int = typer.Option(DEFAULT_PORT, help="Port for the web server"),
    root_path: Optional[str] = typer.Option(
        None,
        help="Prefix the application expects when mounted behind a proxy",
        envvar="SHAYARI_DIARY_ROOT_PATH",
    ),
) -> None:
    """Run the diary web app and music player."""

    app_config = initialize_app()
    _prepare_logging(app_config.storage_root)

    repository = ShayariRepository(app_config)
    library = MusicLibrary(app_config)
    normalized_root = _normalize_root_path(root_path)
    app = create_app(
        repository,
        library,
        config=app_config,
        root_path=normalized_root,
        max_upload_bytes=get_max_upload_bytes(),
    )

    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        root_path=normalized_root,
    )
    server = uvicorn.Server(server_config)
    app.state.server = server

    browser_host = host
    if not browser_host or browser_host in {"0.0.0.0", "::"}:
        browser_host = "127.0.0.1"
    url = f"http://{browser_host}:{port}{normalized_root}/"

    def _open_browser_later() -> None:
        time.sleep(1.0)
        try:
            webbrowser.open(url, new=2, autoraise=True)
        except webbrowser.Error as error:
            LOGGER.debug("Could not open browser: %s", error)

    threading.Thread(target=_open_browser_later, daemon=True).start()
    LOGGER.info("Shayari Diary running at %s", url)

    server.run()


@cli.command()
def overview(style: UIStyle = style_option) -> None:
    """Render an overview of stored shayari and music."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    repository = ShayariRepository(config)
    library = MusicLibrary(config)
    if style is UIStyle.MODERN:
        ui = ModernUI(repository, library)
    else:
        ui = ConsoleUI(repository, library)
    ui.run()


@cli.command()
def add(
    text: str = typer.Option(..., help="The shayari text"),
    mood: str = typer.Option(..., help="Mood label, e.g. love or sad"),
    author: Optional[str] = typer.Option(None, help="Author name (defaults to Anonymous)"),
) -> None:
    """Write a new shayari entry."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    repository = ShayariRepository(config)
    try:
        record = repository.add_entry(text, mood, author=author)
    except ValidationError as error:
        typer.echo(f"Could not add shayari: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Added shayari {record.id} ({record.mood}, {record.author}).")


@cli.command("import-music")
def import_music(
    audio: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="Path to the audio file to add to the library.",
    ),
    title: str = typer.Option(..., help="Track title"),
    artist: Optional[str] = typer.Option(None, help="Artist name"),
    mood: Optional[str] = typer.Option(None, help="Mood tag for the track"),
) -> None:
    """Copy an audio file into the music library."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    library = MusicLibrary(config)
    try:
        with audio.open("rb") as handle:
            track = library.add_track(
                handle,
                filename=audio.name,
                title=title,
                artist=artist,
                mood=mood,
                content_type=AUDIO_CONTENT_TYPES.get(audio.suffix.lower()),
            )
    except ValidationError as error:
        typer.echo(f"Could not import music: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Imported '{track.title}' by {track.artist} as {track.filename}.")


if __name__ == "__main__":
    cli()
