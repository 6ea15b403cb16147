"""Persistence helpers for music player preferences."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..config import AppConfig
from .playback import DEFAULT_MAX_ATTEMPTS


LOGGER = logging.getLogger(__name__)


@dataclass
class PlayerSettings:
    """Container for customisable player options."""

    volume: float = 1.0
    muted: bool = False
    max_fallback_attempts: int = DEFAULT_MAX_ATTEMPTS
    stall_timeout_seconds: float = 10.0
    default_mood: str = ""


class SettingsPayload(BaseModel):
    """Accepted types and bounds for each :class:`PlayerSettings` field."""

    volume: float = Field(1.0, ge=0.0, le=1.0)
    muted: bool = False
    max_fallback_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    stall_timeout_seconds: float = Field(10.0, ge=1.0, le=120.0)
    default_mood: str = ""


class SettingsStore:
    """Load and store :class:`PlayerSettings` next to the diary data."""

    def __init__(self, config: AppConfig) -> None:
        self._path = config.settings_file

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PlayerSettings:
        """Return the stored settings.

        Unknown keys are ignored. A value of the wrong type or outside its
        bounds is logged and replaced by that field's default.
        """

        if not self._path.exists():
            return PlayerSettings()

        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self._path, error)
            return PlayerSettings()
        if not isinstance(payload, dict):
            return PlayerSettings()

        values: Dict[str, Any] = {}
        for field, value in payload.items():
            if field not in SettingsPayload.model_fields:
                continue
            try:
                checked = SettingsPayload.model_validate({field: value})
            except PydanticValidationError as error:
                LOGGER.warning(
                    "Ignoring invalid setting %s=%r in %s: %s",
                    field,
                    value,
                    self._path,
                    error.errors()[0].get("msg", "invalid value"),
                )
                continue
            values[field] = getattr(checked, field)
        return PlayerSettings(**values)

    def save(self, settings: PlayerSettings) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")


__all__ = ["PlayerSettings", "SettingsPayload", "SettingsStore"]
