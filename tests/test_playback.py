from __future__ import annotations

import pytest

from diary.services.music import TrackRecord
from diary.services.playback import (
    FallbackSequencer,
    PlaybackError,
    fallback_paths,
    song_path,
    stream_url,
)


def _track(path: str = "/api/music/123_song.m4a", filename: str = "123_song.m4a") -> TrackRecord:
    return TrackRecord(id="123", title="Song", artist="Artist", path=path, filename=filename)


def test_song_path_variants() -> None:
    assert song_path(_track()) == "/api/music/123_song.m4a"
    assert song_path(_track(path="/music/old.mp3", filename="old.mp3")) == "/api/music/old.mp3"
    assert song_path(_track(path="relative/x.mp3", filename="x.mp3")) == "/api/music/stream?filename=x.mp3"
    assert song_path(_track(), "ogg") == "/api/music/stream?filename=123_song.m4a&format=ogg"
    assert song_path(_track(path="", filename="")) == ""


def test_stream_url_quotes_filename() -> None:
    assert stream_url("a b&c.mp3") == "/api/music/stream?filename=a%20b%26c.mp3"


def test_fallback_paths_order_and_deduplication() -> None:
    paths = fallback_paths(_track(), ["OGG", "mp3", "flac"])

    assert paths == [
        "/api/music/123_song.m4a",
        "/api/music/stream?filename=123_song.m4a",
        "/api/music/stream?filename=123_song.m4a&format=mp3",
        "/api/music/stream?filename=123_song.m4a&format=ogg",
        "/music/123_song.m4a",
        "/public/music/123_song.m4a",
    ]


def test_fallback_paths_without_supported_formats_skip_transcodes() -> None:
    paths = fallback_paths(_track())

    assert not [path for path in paths if "format=" in path]


def test_first_step_plays_primary() -> None:
    sequencer = FallbackSequencer.for_track(_track(), ["mp3"])

    step = sequencer.first_step()

    assert step.action == "play"
    assert step.index == 0
    assert step.attempt == 1
    assert step.url == "/api/music/123_song.m4a"


def test_not_allowed_waits_for_interaction_without_consuming_attempts() -> None:
    sequencer = FallbackSequencer.for_track(_track(), ["mp3"])

    step = sequencer.next_step(0, PlaybackError.NOT_ALLOWED, 1)

    assert step.action == "wait_for_interaction"
    assert step.index == 0
    assert step.attempt == 1


def test_decode_error_jumps_to_transcoded_source() -> None:
    sequencer = FallbackSequencer.for_track(_track(), ["ogg"])

    step = sequencer.next_step(0, PlaybackError.DECODE, 1)

    assert step.action == "play"
    assert step.url.endswith("&format=ogg")
    assert step.attempt == 2
    assert step.format_error is True
    assert step.to_dict()["formatError"] is True


@pytest.mark.parametrize(
    "error",
    [PlaybackError.NETWORK, PlaybackError.STALLED, PlaybackError.TIMEOUT, PlaybackError.ABORTED],
)
def test_other_errors_advance_to_next_candidate(error: PlaybackError) -> None:
    sequencer = FallbackSequencer.for_track(_track(), ["ogg"])

    step = sequencer.next_step(0, error, 1)

    assert step.index == 1
    assert step.url == "/api/music/stream?filename=123_song.m4a"
    assert step.format_error is False


def test_attempts_are_bounded() -> None:
    sequencer = FallbackSequencer.for_track(_track(), ["mp3", "ogg", "wav"], max_attempts=2)

    first = sequencer.next_step(0, PlaybackError.NETWORK, 1)
    second = sequencer.next_step(first.index, PlaybackError.NETWORK, first.attempt)
    final = sequencer.next_step(second.index, PlaybackError.NETWORK, second.attempt)

    assert (first.action, second.action) == ("play", "play")
    assert final.action == "give_up"
    assert final.format_error is True


def test_gives_up_when_candidates_run_out_or_index_is_invalid() -> None:
    sequencer = FallbackSequencer(["/a", "/b"], max_attempts=10)

    assert sequencer.next_step(1, PlaybackError.UNKNOWN, 2).action == "give_up"
    assert sequencer.next_step(7, PlaybackError.UNKNOWN, 1).action == "give_up"
    assert FallbackSequencer([]).first_step().action == "give_up"


def test_playback_error_parse_defaults_to_unknown() -> None:
    assert PlaybackError.parse("DECODE") is PlaybackError.DECODE
    assert PlaybackError.parse("weird") is PlaybackError.UNKNOWN
    assert PlaybackError.parse(None) is PlaybackError.UNKNOWN


def test_plan_payload_shape() -> None:
    plan = FallbackSequencer(["/a"], max_attempts=3).plan()

    assert plan == {
        "candidates": ["/a"],
        "maxAttempts": 3,
        "step": {"action": "play", "url": "/a", "index": 0, "attempt": 1, "formatError": False},
    }
