"""Structured event helpers shared across the application."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_EVENT_LOGGER = logging.getLogger("shayari_diary.events")

STORE_EVENT = "STORE_OP"
FILE_EVENT = "FILE_OP"
APP_EVENT = "APP_EVENT"

_MAX_VALUE_LENGTH = 200


def sanitize_context_value(value: Any) -> Any:
    """Return a log friendly representation for *value*."""

    if value is None:
        return None
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        cleaned_mapping: Dict[str, Any] = {}
        for key, item in value.items():
            cleaned = sanitize_context_value(item)
            if key is None or cleaned is None or cleaned == "":
                continue
            cleaned_mapping[str(key)] = cleaned
        return cleaned_mapping
    if isinstance(value, (list, tuple, set)):
        text = ", ".join(str(item) for item in value)
    else:
        text = str(value)
    text = text.strip()
    if not text:
        return None
    if len(text) > _MAX_VALUE_LENGTH:
        return text[:_MAX_VALUE_LENGTH] + "…"
    return text


def normalize_context(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty keys and values from *values* and sanitise the rest."""

    if not values:
        return {}
    normalized: Dict[str, Any] = {}
    for key, raw_value in values.items():
        if not key:
            continue
        value = sanitize_context_value(raw_value)
        if value is None or value == "":
            continue
        normalized[str(key)] = value
    return normalized


def emit_structured_event(
    event_type: str,
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
    correlation: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Log ``[TYPE] message (key=value, ...)`` with the fields attached as extras."""

    base_message = str(message).strip()
    details = {
        **normalize_context(correlation),
        **normalize_context(context),
        **normalize_context(payload),
    }
    if duration_ms is not None:
        details["duration_ms"] = round(float(duration_ms), 2)

    display = f"[{event_type}] {base_message}" if event_type else base_message
    if details:
        rendered = ", ".join(f"{key}={value}" for key, value in details.items())
        display = f"{display} ({rendered})"

    extra: Dict[str, Any] = {
        "event": base_message,
        "event_type": event_type or "",
        "event_details": details,
    }
    if duration_ms is not None:
        extra["event_duration_ms"] = float(duration_ms)
    logger.log(level, display, extra=extra)


def emit_store_event(action: str, **kwargs: Any) -> None:
    """Emit an event describing a JSON store operation."""

    emit_structured_event(STORE_EVENT, action, **kwargs)


def emit_file_event(operation: str, **kwargs: Any) -> None:
    """Emit an event describing a media file operation."""

    emit_structured_event(FILE_EVENT, operation, **kwargs)


__all__ = [
    "APP_EVENT",
    "DEFAULT_EVENT_LOGGER",
    "FILE_EVENT",
    "STORE_EVENT",
    "emit_file_event",
    "emit_store_event",
    "emit_structured_event",
    "normalize_context",
    "sanitize_context_value",
]
