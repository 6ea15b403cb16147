from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from diary.services.naming import (
    extension_of,
    iso_timestamp,
    millisecond_id,
    safe_filename,
    sanitize_title,
    title_from_filename,
    unique_id,
)


def test_millisecond_id_uses_epoch_milliseconds() -> None:
    assert millisecond_id(1700000000.1234) == "1700000000123"


def test_unique_id_skips_taken_values() -> None:
    taken = {"1700000000000", "1700000000001"}

    assert unique_id(taken, now=1700000000.0) == "1700000000002"


def test_iso_timestamp_is_utc_with_z_suffix() -> None:
    moment = datetime(2024, 2, 14, 18, 30, 5, 250000, tzinfo=timezone(timedelta(hours=5, minutes=30)))

    assert iso_timestamp(moment) == "2024-02-14T13:00:05.250Z"
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", iso_timestamp())


def test_sanitize_title_replaces_non_alphanumerics() -> None:
    assert sanitize_title("Tum Hi Ho!") == "tum_hi_ho_"


def test_safe_filename_strips_traversal() -> None:
    assert safe_filename("../../etc/passwd") == "etcpasswd"
    assert safe_filename("..\\secret.mp3") == "secret.mp3"


def test_extension_of_falls_back_to_default() -> None:
    assert extension_of("photo.PNG", "jpg") == "png"
    assert extension_of("photo", "jpg") == "jpg"
    assert extension_of(None, "jpg") == "jpg"


def test_title_from_filename_strips_numbering() -> None:
    assert title_from_filename("03-dil_se-remix.mp3") == "dil se remix"
