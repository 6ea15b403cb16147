"""Flat JSON array files used as the diary's persistence layer."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional


LOGGER = logging.getLogger(__name__)

EventEmitter = Callable[..., None]


class StoreError(RuntimeError):
    """Raised when a JSON data file cannot be read or written."""


_LOCKS: Dict[Path, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def lock_for(path: Path) -> threading.RLock:
    """Return the process-wide lock guarding *path*."""

    key = path.resolve()
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = _LOCKS[key] = threading.RLock()
        return lock


def ensure_json_array(path: Path, *, backup: bool = True) -> bool:
    """Make sure *path* exists and holds a JSON array.

    Missing files are created with ``[]``. Blank files, invalid JSON and
    documents that are not arrays are reset to ``[]``; the previous content is
    kept in ``<name>.bak`` when *backup* is set. ``False`` is returned only when
    the file system refuses the operation.
    """

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text("[]", encoding="utf-8")
            LOGGER.info("Created data file %s", path)
            return True

        content = path.read_text(encoding="utf-8")
        reason: Optional[str] = None
        if not content.strip():
            reason = "empty"
        else:
            try:
                parsed = json.loads(content)
            except json.JSONDecodeError as error:
                reason = f"invalid JSON ({error.msg})"
            else:
                if not isinstance(parsed, list):
                    reason = f"expected an array, found {type(parsed).__name__}"

        if reason is None:
            LOGGER.debug("Data file %s contains a valid JSON array", path)
            return True

        if backup and content.strip():
            backup_path = path.with_name(path.name + ".bak")
            shutil.copyfile(path, backup_path)
            LOGGER.warning("Backed up unreadable data file %s to %s", path, backup_path)
        path.write_text("[]", encoding="utf-8")
        LOGGER.warning("Reset data file %s: %s", path, reason)
        return True
    except OSError as error:
        LOGGER.error("Could not prepare data file %s: %s", path, error)
        return False


class JsonArrayFile:
    """Thread-safe accessor for a file holding a JSON array of objects."""

    def __init__(
        self,
        path: Path,
        *,
        label: str = "data",
        event_emitter: Optional[EventEmitter] = None,
    ) -> None:
        self._path = path
        self._label = label
        self._lock = lock_for(path)
        self._event_emitter = event_emitter

    @property
    def path(self) -> Path:
        return self._path

    def configure_event_emitter(self, emitter: Optional[EventEmitter]) -> None:
        self._event_emitter = emitter

    @contextlib.contextmanager
    def _track_event(self, action: str, **payload: Any) -> Iterator[Dict[str, Any]]:
        if self._event_emitter is None:
            yield payload
            return

        start = time.perf_counter()
        event_payload: Dict[str, Any] = {"store": self._label, **payload}
        try:
            yield event_payload
        except Exception as exc:
            event_payload.setdefault("status", "error")
            event_payload.setdefault("error", f"{exc.__class__.__name__}: {exc}")
            raise
        finally:
            event_payload.setdefault("status", "ok")
            duration_ms = (time.perf_counter() - start) * 1000.0
            self._event_emitter(
                "STORE_OP",
                f"{self._label}.{action}",
                payload=event_payload,
                duration_ms=duration_ms,
            )

    def _read_unlocked(self) -> List[Dict[str, Any]]:
        if not ensure_json_array(self._path):
            raise StoreError(f"Data file '{self._path}' is not accessible")
        try:
            items = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            raise StoreError(f"Could not read '{self._path}': {error}") from error
        return [item for item in items if isinstance(item, dict)]

    def _write_unlocked(self, items: List[Dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        descriptor, temp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                json.dump(items, handle, indent=2, ensure_ascii=False)
            os.replace(temp_name, self._path)
        except OSError as error:
            with contextlib.suppress(OSError):
                os.unlink(temp_name)
            raise StoreError(f"Could not write '{self._path}': {error}") from error

    def read(self) -> List[Dict[str, Any]]:
        with self._lock, self._track_event("read") as event:
            items = self._read_unlocked()
            event["count"] = len(items)
            return items

    def write(self, items: List[Dict[str, Any]]) -> None:
        with self._lock, self._track_event("write", count=len(items)):
            LOGGER.debug("Writing %s %s item(s) to %s", len(items), self._label, self._path)
            self._write_unlocked(list(items))

    def update(self, mutate: Callable[[List[Dict[str, Any]]], Any]) -> Any:
        """Run a read-modify-write cycle under the file lock.

        *mutate* receives the current items and edits them in place. Its return
        value is passed through. Raising inside *mutate* leaves the file as is.
        """

        with self._lock, self._track_event("update") as event:
            items = self._read_unlocked()
            result = mutate(items)
            self._write_unlocked(items)
            event["count"] = len(items)
            return result


__all__ = ["JsonArrayFile", "StoreError", "ensure_json_array", "lock_for"]
