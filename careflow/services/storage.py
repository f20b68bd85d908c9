"""Local disk storage for uploaded recordings."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool

from careflow.config.settings import settings

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when an uploaded recording cannot be stored or located."""


class UnsupportedMediaError(StorageError):
    """Raised when an upload is not one of the accepted audio types."""


class UploadTooLargeError(StorageError):
    """Raised when an upload exceeds the configured size limit."""


ALLOWED_AUDIO_TYPES: dict[str, str] = {
    "audio/mp3": ".mp3",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/ogg": ".ogg",
    "audio/webm": ".webm",
    "audio/mp4": ".m4a",
    "audio/flac": ".flac",
}

_EXTENSION_CONTENT_TYPES: dict[str, str] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".webm": "audio/webm",
}


def normalize_content_type(content_type: Optional[str]) -> str:
    """Drop codec parameters (``audio/webm;codecs=opus`` -> ``audio/webm``)."""

    return (content_type or "").split(";", 1)[0].strip().lower()


def is_allowed_audio(content_type: Optional[str]) -> bool:
    return normalize_content_type(content_type) in ALLOWED_AUDIO_TYPES


def extension_for(content_type: Optional[str], file_name: Optional[str] = None) -> str:
    """Pick a file extension from the MIME type, falling back to the upload's own name."""

    normalized = normalize_content_type(content_type)
    if normalized in ALLOWED_AUDIO_TYPES:
        return ALLOWED_AUDIO_TYPES[normalized]
    if file_name:
        suffix = Path(file_name).suffix.lower()
        if suffix:
            return suffix
    return ".tmp"


def content_type_for(path: str | Path) -> str:
    """Resolve a playback content type from a stored file's extension."""

    return _EXTENSION_CONTENT_TYPES.get(Path(path).suffix.lower(), "audio/mpeg")


def upload_root() -> Path:
    return Path(settings.storage.upload_dir).resolve()


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(data)


async def save_recording(
    data: bytes,
    *,
    content_type: Optional[str],
    original_name: Optional[str] = None,
) -> Path:
    """Validate and persist an uploaded recording, returning its absolute path."""

    if not data:
        raise StorageError("Uploaded audio file was empty.")
    if not is_allowed_audio(content_type):
        raise UnsupportedMediaError("Only audio files are allowed")
    if len(data) > settings.storage.max_upload_bytes:
        raise UploadTooLargeError(
            f"Audio file exceeds the {settings.storage.max_upload_mb} MB limit."
        )

    file_name = f"{int(time.time() * 1000)}-{uuid4().hex}{extension_for(content_type, original_name)}"
    path = upload_root() / file_name
    try:
        await run_in_threadpool(_write_file, path, data)
    except OSError as exc:
        raise StorageError(f"Failed to store uploaded audio: {exc}") from exc

    logger.info("Stored recording %s (%s bytes, %s)", path.name, len(data), content_type)
    return path


async def read_recording(path: str | Path) -> bytes:
    """Read a stored recording off the event loop."""

    return await run_in_threadpool(Path(path).read_bytes)


async def remove_recording(path: str | Path) -> None:
    """Delete a stored recording, ignoring files that are already gone."""

    def _remove() -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass

    await run_in_threadpool(_remove)


async def remove_recordings(paths: Iterable[str | Path]) -> None:
    """Remove audio files whose rows are already deleted; failures are only logged."""

    for path in paths:
        try:
            await remove_recording(path)
        except OSError as exc:
            logger.warning("Could not remove audio file %s: %s", path, exc)


def resolve_stored_path(path: str | Path) -> Path:
    """Return the real path of a stored recording if it lives inside the upload root.

    Symlinks and anything resolving outside the upload directory are
    rejected the same way as missing files.
    """

    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = upload_root() / candidate
    if candidate.is_symlink():
        raise StorageError("Recording file not found.")

    root = upload_root()
    real = candidate.resolve()
    if root not in real.parents:
        raise StorageError("Recording file not found.")
    if not real.is_file():
        raise StorageError("Recording file not found.")
    return real


__all__ = [
    "ALLOWED_AUDIO_TYPES",
    "StorageError",
    "UnsupportedMediaError",
    "UploadTooLargeError",
    "content_type_for",
    "extension_for",
    "is_allowed_audio",
    "normalize_content_type",
    "read_recording",
    "remove_recording",
    "remove_recordings",
    "resolve_stored_path",
    "save_recording",
    "upload_root",
]
