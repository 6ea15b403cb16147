from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from diary.bootstrap import Bootstrapper
from diary.config import AppConfig


CONFIG_MAPPING = {
    "storage_root": "storage",
    "data_file": "storage/shayari.json",
    "uploads_root": "storage/uploads",
    "music_root": "storage/music",
    "legacy_music_roots": ["public/music"],
    "legacy_upload_roots": ["public/uploads"],
    "max_image_bytes": 1024,
    "max_music_bytes": 2048,
}


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    monkeypatch.chdir(tmp_path)

    config = AppConfig.from_mapping(dict(CONFIG_MAPPING), base_path=tmp_path)

    Bootstrapper(config).initialize()
    return config
