"""Bootstrap logic that prepares data directories, data files and the music index."""

from __future__ import annotations

import logging
from pathlib import Path

from . import config as config_module
from .config import AppConfig, load_config
from .services.jsonstore import ensure_json_array
from .services.music import MusicLibrary

LOGGER = logging.getLogger(__name__)


class BootstrapError(RuntimeError):
    """Raised when initialization cannot be completed."""


class Bootstrapper:
    """High level object orchestrating initialization steps."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self) -> None:
        """Run all bootstrap tasks; safe to call repeatedly."""

        LOGGER.debug("Starting bootstrap sequence")
        self._ensure_directories()
        self._ensure_data_files()
        self._prepare_music_library()
        LOGGER.info("Bootstrap completed successfully")

    def _ensure_directories(self) -> None:
        directories = (
            ("storage", self._config.storage_root),
            ("data", self._config.data_file.parent),
            ("uploads", self._config.uploads_root),
            ("music", self._config.music_root),
        )
        for label, path in directories:
            if not config_module._ensure_writable_directory(path):
                raise BootstrapError(f"The {label} directory '{path}' is not writable")
            LOGGER.debug("Ensured %s directory exists: %s", label, path)

    def _ensure_data_files(self) -> None:
        for path in (self._config.data_file, self._config.metadata_file):
            if not ensure_json_array(path):
                raise BootstrapError(f"Data file '{path}' could not be prepared")

    def _prepare_music_library(self) -> None:
        library = MusicLibrary(self._config)
        imported = library.import_seed_tracks()
        fixed = library.normalize_paths()
        LOGGER.debug(
            "Music library ready (imported=%s, normalized=%s)", imported, fixed
        )


def initialize_app(config_path: Path | None = None) -> AppConfig:
    """Convenience helper that loads configuration and runs initialization."""

    config = load_config(config_path=config_path)
    bootstrapper = Bootstrapper(config)
    bootstrapper.initialize()
    return config


__all__ = ["BootstrapError", "Bootstrapper", "initialize_app"]
