"""Content types, stored media lookup and audio transcoding."""

from __future__ import annotations

import contextlib
import hashlib
import logging
import shutil
import subprocess
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, Optional

from .errors import RecordNotFoundError, UploadTooLargeError, ValidationError
from .naming import safe_filename


LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024


IMAGE_CONTENT_TYPES: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

AUDIO_CONTENT_TYPES: Dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
}

# MIME types browsers report for audio uploads, mapped to a stored extension.
AUDIO_UPLOAD_TYPES: Dict[str, str] = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/x-m4a": "m4a",
    "audio/mp4": "m4a",
    "audio/aac": "aac",
    "audio/flac": "flac",
}

TRANSCODE_FORMATS = ("mp3", "ogg", "wav")

_FFMPEG_CODECS: Dict[str, list] = {
    "mp3": ["-c:a", "libmp3lame", "-q:a", "4"],
    "ogg": ["-c:a", "libvorbis", "-q:a", "5"],
    "wav": ["-c:a", "pcm_s16le"],
}


def image_content_type(path: Path) -> str:
    return IMAGE_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def audio_content_type(path: Path) -> str:
    return AUDIO_CONTENT_TYPES.get(path.suffix.lower(), "audio/mpeg")


def find_media_file(filename: str, roots: Iterable[Path]) -> Path:
    """Return the first existing file called *filename* inside *roots*.

    The name is sanitised first and every candidate must stay inside its root.
    """

    cleaned = safe_filename(filename)
    if not cleaned:
        raise RecordNotFoundError("File not found")

    for root in roots:
        root_path = root.resolve()
        candidate = (root_path / cleaned).resolve()
        try:
            candidate.relative_to(root_path)
        except ValueError:
            continue
        if candidate.is_file():
            return candidate
        LOGGER.debug("Media file %s not found under %s", cleaned, root_path)

    raise RecordNotFoundError("File not found")


def ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None


def transcode_cache_path(source: Path, target_format: str, cache_dir: Path) -> Path:
    """Return the cache location for *source* converted to *target_format*.

    The name carries a digest of the resolved source path so files sharing a
    stem in different roots or with different extensions never collide.
    """

    fmt = target_format.lower().lstrip(".")
    digest = hashlib.sha1(str(source.resolve()).encode("utf-8")).hexdigest()[:12]
    return cache_dir / f"{source.stem}-{digest}.{fmt}"


def transcode_audio(
    source: Path,
    target_format: str,
    *,
    cache_dir: Path,
) -> Path:
    """Return a path holding *source* encoded as *target_format*.

    The source is returned unchanged when it already uses the requested format,
    when the format is not one we transcode to, or when FFmpeg is missing.
    Converted files are cached in *cache_dir* and reused while they are newer
    than the source.
    """

    fmt = target_format.lower().lstrip(".")
    if source.suffix.lower() == f".{fmt}":
        LOGGER.debug("Source %s already uses format %s", source, fmt)
        return source
    if fmt not in _FFMPEG_CODECS:
        LOGGER.debug("Format %s is not a transcoding target; serving %s", fmt, source)
        return source

    cache_dir.mkdir(parents=True, exist_ok=True)
    candidate = transcode_cache_path(source, fmt, cache_dir)
    if candidate.exists() and candidate.stat().st_mtime >= source.stat().st_mtime:
        LOGGER.debug("Reusing cached transcode %s", candidate)
        return candidate

    ffmpeg_path = shutil.which("ffmpeg")
    if ffmpeg_path is None:
        LOGGER.warning("FFmpeg not found; serving original audio %s", source)
        return source

    command = [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(source),
        *_FFMPEG_CODECS[fmt],
        str(candidate),
    ]
    LOGGER.debug("Executing FFmpeg command: %s", " ".join(command))
    try:
        completed = subprocess.run(
            command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False
        )
    except FileNotFoundError as error:  # pragma: no cover - binary vanished after lookup
        raise ValueError("Audio transcoding requires FFmpeg to be installed on the server.") from error

    if completed.returncode != 0:
        candidate.unlink(missing_ok=True)
        stderr = completed.stderr.decode("utf-8", errors="ignore").strip()
        details = (stderr or "FFmpeg exited with a non-zero status.").splitlines()
        LOGGER.debug("FFmpeg transcode failed (code=%s): %s", completed.returncode, stderr)
        raise ValueError(
            f"Unable to transcode audio to {fmt}: {details[0] if details else 'Unknown error.'}"
        )

    LOGGER.info("Transcoded %s to %s", source.name, candidate)
    return candidate


def copy_limited(
    source: BinaryIO,
    target: Path,
    *,
    limit: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy *source* into *target* in chunks, enforcing *limit* bytes.

    Returns the number of bytes written. Empty payloads raise
    :class:`ValidationError` and oversize payloads raise
    :class:`UploadTooLargeError`; in both cases *target* is removed.
    """

    if hasattr(source, "seek"):
        with contextlib.suppress(OSError, ValueError):
            source.seek(0)

    written = 0
    try:
        with target.open("wb") as buffer:
            while True:
                chunk = source.read(chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if limit > 0 and written > limit:
                    raise UploadTooLargeError(written, limit)
                buffer.write(chunk)
        if written == 0:
            raise ValidationError("File data is empty")
    except Exception:
        target.unlink(missing_ok=True)
        raise

    LOGGER.debug("Stored %s byte(s) at %s", written, target)
    return written


def resolve_upload_extension(
    filename: Optional[str],
    content_type: Optional[str],
    allowed: Iterable[str],
) -> Optional[str]:
    """Pick the stored extension for an upload, or ``None`` if unsupported."""

    allowed_set = {item.lower() for item in allowed}
    if filename and "." in filename:
        suffix = filename.rsplit(".", 1)[-1].lower()
        if suffix in allowed_set:
            return suffix
    if content_type:
        mapped = AUDIO_UPLOAD_TYPES.get(content_type.split(";")[0].strip().lower())
        if mapped in allowed_set:
            return mapped
    return None


__all__ = [
    "AUDIO_CONTENT_TYPES",
    "AUDIO_UPLOAD_TYPES",
    "IMAGE_CONTENT_TYPES",
    "TRANSCODE_FORMATS",
    "audio_content_type",
    "copy_limited",
    "ffmpeg_available",
    "find_media_file",
    "image_content_type",
    "resolve_upload_extension",
    "transcode_audio",
    "transcode_cache_path",
]
