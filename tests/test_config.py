import json
from pathlib import Path

import diary.config as config_module
from diary.config import AppConfig, load_config


def test_from_mapping_resolves_paths_against_base(tmp_path: Path) -> None:
    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "data_file": "storage/shayari.json",
            "uploads_root": "storage/uploads",
            "music_root": "storage/music",
            "legacy_music_roots": ["public/music"],
        },
        base_path=tmp_path,
    )

    storage = (tmp_path / "storage").resolve()
    assert config.storage_root == storage
    assert config.data_file == storage / "shayari.json"
    assert config.uploads_root == storage / "uploads"
    assert config.music_root == storage / "music"
    assert config.metadata_file == storage / "music" / "metadata.json"
    assert config.transcode_root == storage / "music" / ".transcoded"
    assert config.settings_file == storage / "settings.json"
    assert config.legacy_music_roots == ((tmp_path / "public" / "music").resolve(),)
    assert config.legacy_upload_roots == ()
    assert config.max_image_bytes == config_module.DEFAULT_MAX_IMAGE_BYTES
    assert config.max_music_bytes == config_module.DEFAULT_MAX_MUSIC_BYTES


def test_music_root_falls_back_when_preferred_is_unusable(tmp_path: Path) -> None:
    storage = tmp_path / "storage"
    storage.mkdir()
    (tmp_path / "music").write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "data_file": "storage/shayari.json",
            "music_root": "music",
        },
        base_path=tmp_path,
    )

    expected_fallback = (storage / "music").resolve()
    assert config.music_root == expected_fallback
    assert expected_fallback.is_dir()


def test_storage_root_falls_back_when_preferred_is_unusable(
    tmp_path: Path, monkeypatch
) -> None:
    home_dir = tmp_path / "home"
    monkeypatch.setattr(config_module.Path, "home", lambda: home_dir)

    (tmp_path / "storage").write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "data_file": "storage/shayari.json",
            "uploads_root": "storage/uploads",
            "music_root": "storage/music",
        },
        base_path=tmp_path,
    )

    expected_storage = (home_dir / ".shayari_diary" / "storage").resolve()
    assert config.storage_root == expected_storage
    assert config.data_file == expected_storage / "shayari.json"
    assert config.uploads_root == expected_storage / "uploads"
    assert config.music_root == expected_storage / "music"
    assert config.uploads_root.is_dir()


def test_load_config_reads_explicit_file(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.json"
    config_file.write_text(
        json.dumps(
            {
                "storage_root": str(tmp_path / "data"),
                "data_file": str(tmp_path / "data" / "entries.json"),
                "uploads_root": str(tmp_path / "data" / "uploads"),
                "music_root": str(tmp_path / "data" / "music"),
                "max_music_bytes": 4096,
            }
        ),
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.storage_root == (tmp_path / "data").resolve()
    assert config.data_file.name == "entries.json"
    assert config.max_music_bytes == 4096
