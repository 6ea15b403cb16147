from __future__ import annotations

import json

import pytest

from diary.config import AppConfig
from diary.services.errors import RecordNotFoundError, ValidationError
from diary.services.storage import DEFAULT_AUTHOR, ShayariRepository


def test_repository_crud_cycle(temp_config: AppConfig) -> None:
    repository = ShayariRepository(temp_config)

    created = repository.add_entry("  Dil ki baat  ", "love", author="Mir")
    assert created.text == "Dil ki baat"
    assert created.author == "Mir"
    assert created.date.endswith("Z")
    assert created.image_path is None

    retrieved = repository.get_entry(created.id)
    assert retrieved == created

    updated = repository.update_entry(created.id, text="Naya sher", image_path="/uploads/1.jpg")
    assert updated.text == "Naya sher"
    assert updated.mood == "love"
    assert updated.id == created.id
    assert updated.date == created.date
    assert updated.image_path == "/uploads/1.jpg"

    cleared = repository.update_entry(created.id, image_path=None)
    assert cleared.image_path is None
    assert cleared.text == "Naya sher"

    repository.remove_entry(created.id)
    assert repository.get_entry(created.id) is None
    assert repository.list_entries() == []


def test_add_entry_defaults_author_and_persists_camel_case(temp_config: AppConfig) -> None:
    repository = ShayariRepository(temp_config)

    record = repository.add_entry("Raat", "sad", author="   ", image_path="/uploads/2.png")

    assert record.author == DEFAULT_AUTHOR
    stored = json.loads(temp_config.data_file.read_text(encoding="utf-8"))
    assert stored == [
        {
            "id": record.id,
            "text": "Raat",
            "mood": "sad",
            "author": DEFAULT_AUTHOR,
            "date": record.date,
            "imagePath": "/uploads/2.png",
        }
    ]


def test_add_entry_generates_distinct_ids(temp_config: AppConfig) -> None:
    repository = ShayariRepository(temp_config)

    ids = {repository.add_entry(f"line {index}", "calm").id for index in range(5)}

    assert len(ids) == 5


@pytest.mark.parametrize("text, mood", [("", "love"), ("words", "   "), (None, "love")])
def test_add_entry_requires_text_and_mood(temp_config: AppConfig, text, mood) -> None:
    repository = ShayariRepository(temp_config)

    with pytest.raises(ValidationError):
        repository.add_entry(text, mood)

    assert repository.list_entries() == []


def test_update_and_remove_unknown_entry(temp_config: AppConfig) -> None:
    repository = ShayariRepository(temp_config)

    with pytest.raises(RecordNotFoundError, match="Shayari with ID missing not found"):
        repository.update_entry("missing", text="x")
    with pytest.raises(RecordNotFoundError):
        repository.remove_entry("missing")


def test_search_matches_case_insensitively_and_combines_terms(temp_config: AppConfig) -> None:
    repository = ShayariRepository(temp_config)
    repository.add_entry("Chand raat ki baat", "Romantic")
    repository.add_entry("Tanhai ki raat", "sad")
    repository.add_entry("Subah ki dhoop", "romantic")

    assert len(repository.search(mood="ROMAN")) == 2
    assert len(repository.search(text="RAAT")) == 2
    both = repository.search(mood="romantic", text="raat")
    assert [record.text for record in both] == ["Chand raat ki baat"]

    with pytest.raises(ValidationError):
        repository.search(mood="  ", text=None)


def test_stats_counts_moods_authors_and_date_range(temp_config: AppConfig) -> None:
    repository = ShayariRepository(temp_config)
    empty = repository.stats().to_dict()
    assert empty == {
        "totalCount": 0,
        "moodCounts": {},
        "authorCounts": {},
        "dateRange": {"oldest": None, "newest": None},
    }

    temp_config.data_file.write_text(
        json.dumps(
            [
                {"id": "1", "text": "a", "mood": "love", "author": "Ghalib", "date": "2024-03-01T10:00:00.000Z"},
                {"id": "2", "text": "b", "mood": "sad", "author": "", "date": "2023-12-31T23:59:59.000Z"},
                {"id": "3", "text": "c", "mood": "love", "author": "Ghalib", "date": "2024-05-20T08:00:00.000Z"},
            ]
        ),
        encoding="utf-8",
    )

    stats = repository.stats().to_dict()
    assert stats["totalCount"] == 3
    assert stats["moodCounts"] == {"love": 2, "sad": 1}
    assert stats["authorCounts"] == {"Ghalib": 2, DEFAULT_AUTHOR: 1}
    assert stats["dateRange"] == {
        "oldest": "2023-12-31T23:59:59.000Z",
        "newest": "2024-05-20T08:00:00.000Z",
    }


def test_null_fields_read_as_empty_strings(temp_config: AppConfig) -> None:
    temp_config.data_file.write_text(
        json.dumps(
            [
                {"id": "1", "text": "a", "mood": None, "author": None, "date": None},
                {"id": "2", "text": None, "mood": "sad", "author": "Mir", "date": "2024-01-01T00:00:00.000Z"},
            ]
        ),
        encoding="utf-8",
    )
    repository = ShayariRepository(temp_config)

    first, second = repository.list_entries()
    assert first.mood == ""
    assert first.date == ""
    assert first.author == DEFAULT_AUTHOR
    assert second.text == ""

    stats = repository.stats().to_dict()
    assert stats["moodCounts"] == {"": 1, "sad": 1}
    assert "None" not in stats["moodCounts"]
    assert repository.search(mood="none") == []
