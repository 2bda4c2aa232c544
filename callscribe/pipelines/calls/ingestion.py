"""Upload ingestion helpers (Stage 01 of the call pipeline)."""

from __future__ import annotations

import mimetypes
import secrets
import time
from pathlib import Path
from typing import Final

from fastapi import UploadFile, status

_CHUNK_SIZE: Final[int] = 1024 * 1024


class AudioValidationError(ValueError):
    """Raised when an uploaded file is not acceptable audio."""

    def __init__(self, message: str, *, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(message)
        self.status_code = status_code


def resolve_content_type(audio_file: UploadFile, allowed_prefix: str = "audio/") -> str:
    """Return the upload MIME type, guessing from the filename only when none was sent.

    A declared type is authoritative, so ``application/octet-stream`` is
    rejected even when the filename looks like audio.
    """

    content_type = audio_file.content_type
    if not content_type and audio_file.filename:
        content_type, _ = mimetypes.guess_type(audio_file.filename)

    if not content_type or not content_type.lower().startswith(allowed_prefix):
        raise AudioValidationError("Only audio files are allowed")
    return content_type


def _upload_name(audio_file: UploadFile, content_type: str) -> str:
    suffix = Path(audio_file.filename or "").suffix.lower()
    if not suffix:
        suffix = mimetypes.guess_extension(content_type) or ".mp3"
    return f"call-{int(time.time() * 1000)}-{secrets.token_hex(6)}{suffix}"


async def save_upload(
    audio_file: UploadFile,
    directory: Path,
    *,
    max_bytes: int,
    allowed_prefix: str = "audio/",
) -> Path:
    """Validate and store the upload, returning the path on disk.

    The body is streamed in chunks so oversize uploads are rejected without
    holding them in memory. Nothing is left on disk when validation fails.
    """

    content_type = resolve_content_type(audio_file, allowed_prefix)

    directory.mkdir(parents=True, exist_ok=True)
    destination = directory / _upload_name(audio_file, content_type)

    written = 0
    try:
        with destination.open("wb") as handle:
            while chunk := await audio_file.read(_CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise AudioValidationError(
                        f"Audio file exceeds the {max_bytes} byte limit",
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    )
                handle.write(chunk)
        if written == 0:
            raise AudioValidationError("Uploaded audio file is empty")
    except BaseException:
        destination.unlink(missing_ok=True)
        raise
    finally:
        await audio_file.close()

    return destination


__all__ = ["AudioValidationError", "resolve_content_type", "save_upload"]
