from __future__ import annotations

import io
import json

import pytest

from diary.config import AppConfig
from diary.services.errors import (
    RecordNotFoundError,
    UnsupportedMediaError,
    UploadTooLargeError,
)
from diary.services.jsonstore import StoreError
from diary.services.music import MusicLibrary, TrackRecord, canonical_track_path


def test_add_track_stores_file_and_metadata(temp_config: AppConfig) -> None:
    library = MusicLibrary(temp_config)

    track = library.add_track(
        io.BytesIO(b"ID3data"),
        filename="My Song.mp3",
        title="Tum Hi Ho",
        artist="",
        mood="romantic",
        content_type="audio/mpeg",
    )

    assert track.filename.endswith("_tum_hi_ho.mp3")
    assert track.path == f"/api/music/{track.filename}"
    assert track.artist == "Unknown Artist"
    assert track.uploaded.endswith("Z")
    assert (temp_config.music_root / track.filename).read_bytes() == b"ID3data"
    assert library.get_track(track.id) == track
    assert library.resolve_file(track.filename) == (temp_config.music_root / track.filename).resolve()


def test_add_track_uses_mime_when_filename_lacks_extension(temp_config: AppConfig) -> None:
    library = MusicLibrary(temp_config)

    track = library.add_track(io.BytesIO(b"OggS"), filename="blob", title="", content_type="audio/ogg")

    assert track.title == "Untitled"
    assert track.filename.endswith("_untitled.ogg")


def test_add_track_rejects_unsupported_type(temp_config: AppConfig) -> None:
    library = MusicLibrary(temp_config)

    with pytest.raises(UnsupportedMediaError):
        library.add_track(io.BytesIO(b"text"), filename="notes.txt", content_type="text/plain")

    assert library.list_tracks() == []


def test_add_track_enforces_size_limit(temp_config: AppConfig) -> None:
    library = MusicLibrary(temp_config)

    with pytest.raises(UploadTooLargeError):
        library.add_track(
            io.BytesIO(b"x" * (temp_config.max_music_bytes + 1)),
            filename="big.mp3",
            title="Big",
        )

    assert not [path for path in temp_config.music_root.iterdir() if path.suffix == ".mp3"]


def test_add_track_removes_file_when_metadata_write_fails(temp_config: AppConfig, monkeypatch) -> None:
    library = MusicLibrary(temp_config)

    def broken_update(mutate):
        raise StoreError("disk full")

    monkeypatch.setattr(library.store, "update", broken_update)

    with pytest.raises(StoreError):
        library.add_track(io.BytesIO(b"ID3"), filename="a.mp3", title="A")

    assert not list(temp_config.music_root.glob("*.mp3"))


def test_list_tracks_filters_mood_and_skips_incomplete_entries(temp_config: AppConfig) -> None:
    temp_config.metadata_file.write_text(
        json.dumps(
            [
                {"id": "1", "title": "Rain", "mood": "Sad", "filename": "rain.mp3", "path": "/api/music/rain.mp3"},
                {"id": "2", "title": "Sun", "mood": "happy", "filename": "sun.mp3"},
                {"id": "3", "title": "Broken"},
            ]
        ),
        encoding="utf-8",
    )
    library = MusicLibrary(temp_config)

    assert [track.id for track in library.list_tracks()] == ["1", "2"]
    assert [track.id for track in library.list_tracks(mood="sad")] == ["1"]
    assert library.list_tracks(mood="SAD ")[0].artist == "Unknown Artist"


def test_track_record_from_dict_fills_defaults() -> None:
    track = TrackRecord.from_dict({"path": "/music/old.mp3"})

    assert track.filename == "old.mp3"
    assert track.title == "Unknown Title"
    assert track.artist == "Unknown Artist"
    assert track.id == "track-old.mp3"


@pytest.mark.parametrize(
    "path, filename, expected",
    [
        ("/api/music/a.mp3", "a.mp3", "/api/music/a.mp3"),
        ("/music/a.mp3", "a.mp3", "/api/music/a.mp3"),
        ("public/music/a.mp3", None, "/api/music/a.mp3"),
        ("/somewhere/else.mp3", "b.mp3", "/api/music/b.mp3"),
    ],
)
def test_canonical_track_path(path, filename, expected) -> None:
    assert canonical_track_path(path, filename) == expected


def test_normalize_paths_rewrites_legacy_entries(temp_config: AppConfig) -> None:
    temp_config.metadata_file.write_text(
        json.dumps(
            [
                {"id": "1", "filename": "a.mp3", "path": "/music/a.mp3"},
                {"id": "2", "filename": "b.mp3", "path": "/api/music/b.mp3"},
                {"id": "3", "filename": "c.mp3", "path": "uploads/c.mp3"},
            ]
        ),
        encoding="utf-8",
    )
    library = MusicLibrary(temp_config)

    assert library.normalize_paths() == 2
    assert library.normalize_paths() == 0
    stored = json.loads(temp_config.metadata_file.read_text(encoding="utf-8"))
    assert [item["path"] for item in stored] == [
        "/api/music/a.mp3",
        "/api/music/b.mp3",
        "/api/music/c.mp3",
    ]


def test_resolve_file_checks_legacy_roots(temp_config: AppConfig) -> None:
    legacy = temp_config.legacy_music_roots[0]
    legacy.mkdir(parents=True)
    (legacy / "old.wav").write_bytes(b"RIFF")
    library = MusicLibrary(temp_config)

    assert library.resolve_file("old.wav") == (legacy / "old.wav").resolve()
    with pytest.raises(RecordNotFoundError, match="Music file not found"):
        library.resolve_file("missing.mp3")
