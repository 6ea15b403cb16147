"""FastAPI application powering the Shayari Diary web UI and music player."""

from __future__ import annotations

import asyncio
import contextlib
import contextvars
import functools
import logging
import os
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from fastapi import Body, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi import status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..config import AppConfig
from ..services.errors import (
    RecordNotFoundError,
    UnsupportedMediaError,
    UploadTooLargeError,
    ValidationError,
)
from ..services.events import (
    APP_EVENT,
    FILE_EVENT,
    STORE_EVENT,
    emit_file_event,
    emit_store_event,
    emit_structured_event,
)
from ..services.images import ImageStore
from ..services.jsonstore import StoreError
from ..services.media import (
    TRANSCODE_FORMATS,
    audio_content_type,
    image_content_type,
    transcode_audio,
)
from ..services.music import MusicLibrary, TrackRecord
from ..services.playback import FallbackSequencer, PlaybackError
from ..services.settings import PlayerSettings, SettingsPayload, SettingsStore
from ..services.storage import ShayariRecord, ShayariRepository

T = TypeVar("T")

_STATIC_ROOT = Path(__file__).parent / "static"
_TEMPLATE_PATH = Path(__file__).parent / "templates" / "index.html"
_ROOT_PATH_PLACEHOLDER = "__SHAYARI_DIARY_ROOT_PATH__"
_IMAGE_CACHE_CONTROL = "public, max-age=31536000"

_DEFAULT_MAX_UPLOAD_BYTES = 64 * 1024 * 1024
try:
    _MAX_UPLOAD_BYTES = int(
        (os.environ.get("SHAYARI_DIARY_MAX_UPLOAD_BYTES") or "").strip() or _DEFAULT_MAX_UPLOAD_BYTES
    )
except ValueError:
    _MAX_UPLOAD_BYTES = _DEFAULT_MAX_UPLOAD_BYTES


def get_max_upload_bytes() -> int:
    """Return the configured maximum request body size in bytes."""

    return int(_MAX_UPLOAD_BYTES)


_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "shayari_diary_request_id",
    default=None,
)


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


def _collect_correlation_context() -> Dict[str, str]:
    request_id = _REQUEST_ID_VAR.get()
    return {"request_id": request_id} if request_id else {}


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects the request correlation id into records."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra)
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        for key, value in _collect_correlation_context().items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})
EVENT_LOGGER = ContextualLoggerAdapter(logging.getLogger("shayari_diary.events"), {})


def _log_event(message: str, **context: Any) -> None:
    emit_structured_event(
        APP_EVENT,
        message,
        context=context,
        correlation=_collect_correlation_context(),
        logger=EVENT_LOGGER,
    )


def _log_file_event(operation: str, **context: Any) -> None:
    emit_file_event(
        operation,
        context=context,
        correlation=_collect_correlation_context(),
        logger=EVENT_LOGGER,
    )


def _store_event_emitter(event_type: str, message: str, **kwargs: Any) -> None:
    kwargs.setdefault("level", logging.DEBUG)
    kwargs["correlation"] = _collect_correlation_context()
    kwargs["logger"] = EVENT_LOGGER
    if event_type == STORE_EVENT:
        emit_store_event(message, **kwargs)
    elif event_type == FILE_EVENT:
        emit_file_event(message, **kwargs)
    else:
        emit_structured_event(event_type, message, **kwargs)


class RequestContextMiddleware:
    """Assign a correlation identifier to each request and expose it via contextvars."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _new_correlation_id()
        scope.setdefault("state", {})
        if isinstance(scope["state"], dict):
            scope["state"]["request_id"] = request_id
        token = _REQUEST_ID_VAR.set(request_id)
        try:
            await self.app(scope, receive, send)
        finally:
            _REQUEST_ID_VAR.reset(token)


class ForwardedRootPathMiddleware:
    """Apply ``X-Forwarded-Prefix`` from a reverse proxy to incoming requests."""

    def __init__(self, app: ASGIApp) -> None:
        self._app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self._app(scope, receive, send)
            return

        prefix = _extract_forwarded_prefix(scope)
        if prefix is None:
            await self._app(scope, receive, send)
            return

        adjusted_scope = dict(scope)
        adjusted_scope["root_path"] = prefix
        adjusted_scope["path"] = _trim_path(scope.get("path", "/"), prefix)
        raw_path = scope.get("raw_path")
        if isinstance(raw_path, (bytes, bytearray)):
            trimmed = _trim_path(raw_path.decode("latin-1"), prefix)
            adjusted_scope["raw_path"] = trimmed.encode("latin-1")

        await self._app(adjusted_scope, receive, send)


class MaxBodySizeMiddleware:
    """Reject request bodies larger than ``max_bytes`` with HTTP 413."""

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self._app = app
        self._max_bytes = int(max_bytes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http" or self._max_bytes <= 0:
            await self._app(scope, receive, send)
            return

        declared = _extract_content_length(scope)
        if declared is not None and declared > self._max_bytes:
            LOGGER.warning("Rejecting request body of %s bytes (limit %s)", declared, self._max_bytes)
            response = JSONResponse(
                {"detail": _body_too_large_message(self._max_bytes)},
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message.get("type") == "http.request":
                received += len(message.get("body", b""))
                if received > self._max_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=_body_too_large_message(self._max_bytes),
                    )
            return message

        await self._app(scope, limited_receive, send)


def _extract_content_length(scope: Scope) -> Optional[int]:
    for raw_key, raw_value in scope.get("headers") or []:
        if raw_key.decode("latin-1").lower() == "content-length":
            try:
                return int(raw_value.decode("latin-1").strip())
            except ValueError:
                return None
    return None


def _body_too_large_message(max_bytes: int) -> str:
    return f"Request body exceeds the {max_bytes} byte limit"


def _normalize_root_path(value: Optional[str]) -> str:
    if value is None:
        return ""
    normalized = value.strip()
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized.rstrip("/")


def _extract_forwarded_prefix(scope: Scope) -> Optional[str]:
    for raw_key, raw_value in scope.get("headers") or []:
        if raw_key.decode("latin-1").lower() == "x-forwarded-prefix":
            prefix = _normalize_root_path(raw_value.decode("latin-1"))
            return prefix or None
    return None


def _trim_path(path: str, prefix: str) -> str:
    if prefix and (path == prefix or path.startswith(f"{prefix}/")):
        trimmed = path[len(prefix):]
        return trimmed or "/"
    return path


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------
class ShayariCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    mood: str = ""
    author: Optional[str] = None
    image_path: Optional[str] = Field(None, alias="imagePath")


class ShayariUpdatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    mood: Optional[str] = None
    author: Optional[str] = None
    image_path: Optional[str] = Field(None, alias="imagePath")


class ShayariDeletePayload(BaseModel):
    id: Optional[str] = None


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------
def _serialize_entry(record: ShayariRecord) -> Dict[str, Any]:
    return record.to_dict()


def _serialize_track(record: TrackRecord) -> Dict[str, Any]:
    return record.to_dict()


def _parse_formats(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


@contextlib.contextmanager
def _translate_errors() -> Iterator[None]:
    """Map service exceptions to HTTP errors."""

    try:
        yield
    except UploadTooLargeError as error:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(error)) from error
    except UnsupportedMediaError as error:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(error)) from error
    except ValidationError as error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error)) from error
    except RecordNotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    except StoreError as error:
        LOGGER.error("Storage failure: %s", error)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error)) from error
    except OSError as error:
        LOGGER.error("File system failure: %s", error)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not available",
        ) from error


async def _run_blocking(operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking file operation without stalling the event loop."""

    loop = asyncio.get_running_loop()
    context = contextvars.copy_context()
    call = functools.partial(context.run, operation, *args, **kwargs)
    return await loop.run_in_executor(None, call)


def create_app(
    repository: ShayariRepository,
    library: MusicLibrary,
    *,
    config: AppConfig,
    root_path: str | None = None,
    max_upload_bytes: int | None = None,
) -> FastAPI:
    """Return a configured FastAPI application.

    ``max_upload_bytes`` caps request bodies and defaults to
    :func:`get_max_upload_bytes`; ``0`` disables the cap.
    """

    normalized_root = _normalize_root_path(root_path)
    app = FastAPI(
        title="Shayari Diary",
        description="A personal poetry diary with a music player",
        root_path=normalized_root,
    )
    app.state.server = None

    repository.configure_event_emitter(_store_event_emitter)
    library.configure_event_emitter(_store_event_emitter)
    images = ImageStore(config)
    settings_store = SettingsStore(config)
    app.state.repository = repository
    app.state.library = library
    app.state.images = images
    app.state.settings_store = settings_store

    app.add_middleware(RequestContextMiddleware)
    body_limit = get_max_upload_bytes() if max_upload_bytes is None else max_upload_bytes
    app.add_middleware(MaxBodySizeMiddleware, max_bytes=body_limit)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ForwardedRootPathMiddleware)

    app.mount(
        "/static",
        StaticFiles(directory=_STATIC_ROOT, check_dir=False),
        name="assets",
    )

    index_html = _TEMPLATE_PATH.read_text(encoding="utf-8")

    def _render_index_html(request: Request) -> str:
        scope_root = request.scope.get("root_path")
        resolved = _normalize_root_path(scope_root if isinstance(scope_root, str) else None)
        return index_html.replace(_ROOT_PATH_PLACEHOLDER, resolved or normalized_root)

    def _require_track(track_id: str) -> TrackRecord:
        with _translate_errors():
            track = library.get_track(track_id)
        if track is None:
            raise HTTPException(status_code=404, detail=f"Track with ID {track_id} not found")
        return track

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------
    @app.get("/", response_class=HTMLResponse)
    def index(request: Request) -> HTMLResponse:
        return HTMLResponse(_render_index_html(request))

    # ------------------------------------------------------------------
    # Shayari entries
    # ------------------------------------------------------------------
    @app.get("/api/shayari")
    def list_shayari() -> List[Dict[str, Any]]:
        _log_event("Listing shayari")
        with _translate_errors():
            entries = repository.list_entries()
        return [_serialize_entry(record) for record in entries]

    @app.post("/api/shayari", status_code=status.HTTP_201_CREATED)
    def create_shayari(payload: ShayariCreatePayload) -> Dict[str, Any]:
        _log_event("Creating shayari", mood=payload.mood, has_image=bool(payload.image_path))
        with _translate_errors():
            record = repository.add_entry(
                payload.text,
                payload.mood,
                author=payload.author,
                image_path=payload.image_path,
            )
        _log_event("Created shayari", shayari_id=record.id)
        return {
            "success": True,
            "data": _serialize_entry(record),
            "message": "Shayari added successfully",
        }

    @app.get("/api/shayari/search")
    def search_shayari(
        mood: Optional[str] = Query(None),
        text: Optional[str] = Query(None),
    ) -> Dict[str, Any]:
        _log_event("Searching shayari", mood=mood, text=text)
        with _translate_errors():
            results = repository.search(mood=mood, text=text)
        return {
            "success": True,
            "data": [_serialize_entry(record) for record in results],
            "count": len(results),
            "message": f"Found {len(results)} matching shayari entries",
        }

    @app.get("/api/shayari/stats")
    def shayari_stats() -> Dict[str, Any]:
        _log_event("Computing shayari statistics")
        with _translate_errors():
            stats = repository.stats()
        return {"success": True, "data": stats.to_dict()}

    @app.get("/api/shayari/{entry_id}")
    def get_shayari(entry_id: str) -> Dict[str, Any]:
        with _translate_errors():
            record = repository.get_entry(entry_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Shayari with ID {entry_id} not found")
        return {"success": True, "data": _serialize_entry(record)}

    @app.patch("/api/shayari/{entry_id}")
    def update_shayari(entry_id: str, payload: ShayariUpdatePayload) -> Dict[str, Any]:
        _log_event("Updating shayari", shayari_id=entry_id)
        changes: Dict[str, Any] = {
            "text": payload.text,
            "mood": payload.mood,
            "author": payload.author,
        }
        if "image_path" in payload.model_fields_set:
            changes["image_path"] = payload.image_path
        with _translate_errors():
            record = repository.update_entry(entry_id, **changes)
        return {
            "success": True,
            "data": _serialize_entry(record),
            "message": "Shayari updated successfully",
        }

    def _delete_entry(entry_id: Optional[str]) -> Dict[str, Any]:
        if not entry_id:
            raise HTTPException(status_code=400, detail="Shayari ID is required")
        _log_event("Deleting shayari", shayari_id=entry_id)
        with _translate_errors():
            repository.remove_entry(entry_id)
        return {"success": True, "message": "Shayari deleted successfully"}

    @app.delete("/api/shayari")
    def delete_shayari(payload: Optional[ShayariDeletePayload] = Body(None)) -> Dict[str, Any]:
        return _delete_entry(payload.id if payload is not None else None)

    @app.delete("/api/shayari/{entry_id}")
    def delete_shayari_by_path(entry_id: str) -> Dict[str, Any]:
        return _delete_entry(entry_id)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------
    @app.post("/api/upload")
    async def upload_image(image: UploadFile = File(...)) -> Dict[str, Any]:
        _log_event("Uploading image", filename=image.filename)
        try:
            with _translate_errors():
                image_path = await _run_blocking(images.save, image.filename, image.file)
        finally:
            await image.close()
        _log_file_event("image.save", path=image_path)
        return {"success": True, "imagePath": image_path}

    def _image_response(filename: str) -> FileResponse:
        with _translate_errors():
            target = images.resolve(filename)
        return FileResponse(
            target,
            media_type=image_content_type(target),
            headers={"Cache-Control": _IMAGE_CACHE_CONTROL},
        )

    @app.get("/uploads/{filename}")
    def serve_upload(filename: str) -> FileResponse:
        return _image_response(filename)

    @app.get("/api/uploads")
    def serve_upload_by_query(filename: Optional[str] = Query(None)) -> FileResponse:
        if not filename:
            raise HTTPException(status_code=400, detail="Missing filename parameter")
        return _image_response(filename)

    # ------------------------------------------------------------------
    # Music
    # ------------------------------------------------------------------
    @app.get("/api/music/list")
    def list_music(mood: Optional[str] = Query(None)) -> Dict[str, Any]:
        with _translate_errors():
            tracks = library.list_tracks(mood=mood)
        _log_event("Listed music", count=len(tracks), mood=mood)
        return {"success": True, "data": [_serialize_track(track) for track in tracks]}

    @app.post("/api/music/upload", status_code=status.HTTP_201_CREATED)
    async def upload_music(
        file: UploadFile = File(...),
        title: str = Form(""),
        artist: str = Form(""),
        mood: str = Form(""),
    ) -> Dict[str, Any]:
        _log_event("Uploading music", filename=file.filename, content_type=file.content_type)
        try:
            with _translate_errors():
                track = await _run_blocking(
                    library.add_track,
                    file.file,
                    filename=file.filename,
                    title=title,
                    artist=artist,
                    mood=mood,
                    content_type=file.content_type,
                )
        finally:
            await file.close()
        _log_file_event("music.save", filename=track.filename)
        _log_event("Uploaded music", track_id=track.id, filename=track.filename)
        return {
            "success": True,
            "data": _serialize_track(track),
            "message": "Music uploaded successfully",
        }

    @app.get("/api/music/stream")
    async def stream_music(
        filename: Optional[str] = Query(None),
        format: Optional[str] = Query(None),
    ) -> FileResponse:
        if not filename:
            raise HTTPException(status_code=400, detail="Filename parameter is required")
        with _translate_errors():
            source = library.resolve_file(filename)

        target = source
        requested = (format or "").strip().lower()
        if requested:
            if requested not in TRANSCODE_FORMATS:
                raise HTTPException(status_code=400, detail=f"Unsupported format: {requested}")
            try:
                target = await _run_blocking(
                    transcode_audio, source, requested, cache_dir=config.transcode_root
                )
            except ValueError as error:
                LOGGER.error("Transcoding %s to %s failed: %s", source.name, requested, error)
                raise HTTPException(status_code=500, detail=str(error)) from error
            if target != source:
                _log_file_event("music.transcode", source=source.name, target=target.name)

        return FileResponse(target, media_type=audio_content_type(target))

    @app.get("/api/music/{track_id}/playback")
    def playback_step(
        track_id: str,
        formats: Optional[str] = Query(None),
        failed: Optional[int] = Query(None, ge=0),
        error: Optional[str] = Query(None),
        attempt: int = Query(1, ge=0),
    ) -> Dict[str, Any]:
        track = _require_track(track_id)
        settings = settings_store.load()
        sequencer = FallbackSequencer.for_track(
            track,
            _parse_formats(formats),
            max_attempts=settings.max_fallback_attempts,
        )
        if failed is None:
            data = sequencer.plan()
        else:
            playback_error = PlaybackError.parse(error)
            step = sequencer.next_step(failed, playback_error, attempt)
            _log_event(
                "Playback fallback",
                track_id=track_id,
                failed=failed,
                error=playback_error.value,
                action=step.action,
            )
            data = {
                "candidates": sequencer.candidates,
                "maxAttempts": sequencer.max_attempts,
                "step": step.to_dict(),
            }
        data["track"] = _serialize_track(track)
        data["stallTimeoutSeconds"] = settings.stall_timeout_seconds
        return {"success": True, "data": data}

    @app.get("/api/music/{filename}")
    def serve_music_file(filename: str) -> FileResponse:
        with _translate_errors():
            target = library.resolve_file(filename)
        return FileResponse(target, media_type=audio_content_type(target))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    @app.get("/api/settings")
    def get_settings() -> Dict[str, Any]:
        return {"success": True, "data": asdict(settings_store.load())}

    @app.put("/api/settings")
    def update_settings(payload: SettingsPayload) -> Dict[str, Any]:
        settings = PlayerSettings(**payload.model_dump())
        try:
            settings_store.save(settings)
        except OSError as error:
            LOGGER.error("Could not save settings: %s", error)
            raise HTTPException(status_code=503, detail="Settings could not be saved") from error
        _log_event("Updated player settings")
        return {"success": True, "data": asdict(settings)}

    return app


__all__ = ["create_app", "get_max_upload_bytes"]
