"""Ordered audio source candidates and the retry sequence used by the player.

Browsers differ in what they can decode. When the audio element reports an
error for one source the player asks :class:`FallbackSequencer` for the next
URL to try: a plain stream of the stored file, transcoded streams in formats
the browser claims to support, and finally the legacy URL shapes older
metadata used. The number of fallback attempts is bounded.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence
from urllib.parse import quote

from .media import TRANSCODE_FORMATS
from .music import LEGACY_MUSIC_PREFIX, MUSIC_URL_PREFIX, TrackRecord


STREAM_URL = "/api/music/stream"
DEFAULT_MAX_ATTEMPTS = 3

PlaybackAction = Literal["play", "wait_for_interaction", "give_up"]


class PlaybackError(str, Enum):
    """Failure kinds reported by the browser audio element."""

    NOT_ALLOWED = "not_allowed"
    ABORTED = "aborted"
    NETWORK = "network"
    DECODE = "decode"
    SRC_NOT_SUPPORTED = "src_not_supported"
    STALLED = "stalled"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PlaybackError":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class PlaybackStep:
    action: PlaybackAction
    url: Optional[str]
    index: Optional[int]
    attempt: int
    format_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["formatError"] = payload.pop("format_error")
        return payload


def _track_filename(track: TrackRecord) -> str:
    return track.filename or PurePosixPath(track.path).name


def stream_url(filename: str, force_format: Optional[str] = None) -> str:
    url = f"{STREAM_URL}?filename={quote(filename, safe='')}"
    if force_format:
        url += f"&format={force_format}"
    return url


def song_path(track: TrackRecord, force_format: Optional[str] = None) -> str:
    """Return the URL the player should load for *track*."""

    path = track.path or ""
    if not path and not track.filename:
        return ""
    if force_format is None:
        if path.startswith("/api/") or path.startswith("http"):
            return path
        if path.startswith(LEGACY_MUSIC_PREFIX):
            return f"/api{path}"
    return stream_url(_track_filename(track), force_format)


def fallback_paths(track: TrackRecord, supported_formats: Iterable[str] = ()) -> List[str]:
    """Return the de-duplicated candidate URLs for *track* in trial order."""

    supported = {fmt.strip().lower() for fmt in supported_formats if fmt}
    filename = _track_filename(track)
    encoded = quote(filename, safe="")

    candidates = [song_path(track), stream_url(filename)]
    candidates.extend(
        stream_url(filename, fmt) for fmt in TRANSCODE_FORMATS if fmt in supported
    )
    candidates.extend(
        [
            f"{MUSIC_URL_PREFIX}{encoded}",
            f"{LEGACY_MUSIC_PREFIX}{encoded}",
            f"/public/music/{encoded}",
        ]
    )

    ordered: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in ordered:
            ordered.append(candidate)
    return ordered


class FallbackSequencer:
    """Decide which candidate to try after a playback failure.

    ``attempt`` counts sources already tried, the primary included; at most
    ``max_attempts`` fallbacks follow the primary.
    """

    def __init__(self, candidates: Sequence[str], *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        self._candidates = list(candidates)
        self._max_attempts = max(0, int(max_attempts))

    @classmethod
    def for_track(
        cls,
        track: TrackRecord,
        supported_formats: Iterable[str] = (),
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> "FallbackSequencer":
        return cls(fallback_paths(track, supported_formats), max_attempts=max_attempts)

    @property
    def candidates(self) -> List[str]:
        return list(self._candidates)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def first_step(self) -> PlaybackStep:
        if not self._candidates:
            return PlaybackStep("give_up", None, None, 0, format_error=True)
        return PlaybackStep("play", self._candidates[0], 0, 1)

    def next_step(self, failed_index: int, error: PlaybackError, attempt: int) -> PlaybackStep:
        if not 0 <= failed_index < len(self._candidates):
            return PlaybackStep("give_up", None, None, attempt, format_error=True)

        if error is PlaybackError.NOT_ALLOWED:
            return PlaybackStep(
                "wait_for_interaction", self._candidates[failed_index], failed_index, attempt
            )

        if attempt - 1 >= self._max_attempts:
            return PlaybackStep("give_up", None, None, attempt, format_error=True)

        next_index = self._pick_next(failed_index, error)
        if next_index is None:
            return PlaybackStep("give_up", None, None, attempt, format_error=True)

        return PlaybackStep(
            "play",
            self._candidates[next_index],
            next_index,
            attempt + 1,
            format_error=error is PlaybackError.DECODE,
        )

    def _pick_next(self, failed_index: int, error: PlaybackError) -> Optional[int]:
        remaining = range(failed_index + 1, len(self._candidates))
        if error is PlaybackError.DECODE:
            for index in remaining:
                if "format=" in self._candidates[index]:
                    return index
        for index in remaining:
            return index
        return None

    def plan(self) -> Dict[str, Any]:
        return {
            "candidates": self.candidates,
            "maxAttempts": self._max_attempts,
            "step": self.first_step().to_dict(),
        }


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "FallbackSequencer",
    "PlaybackError",
    "PlaybackStep",
    "fallback_paths",
    "song_path",
    "stream_url",
]
