"""Recording acquisition (Stage 02 of the call pipeline)."""

from __future__ import annotations

import logging
import secrets
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from urllib.parse import urlsplit
from uuid import UUID

from callscribe.services.recordings import (
    RecordingFetcher,
    RecordingFetchError,
    is_remote_reference,
)

logger = logging.getLogger("callscribe.pipeline")

_DEFAULT_EXTENSION = "mp3"


def _extension_for(ref: str) -> str:
    suffix = Path(urlsplit(ref).path).suffix.lstrip(".").lower()
    return suffix or _DEFAULT_EXTENSION


def temp_recording_path(call_id: UUID | str, ref: str, directory: Path | None = None) -> Path:
    """Build a per-invocation temp path ``recording-<call_id>-<random>.<ext>``."""

    base = directory or Path(tempfile.gettempdir())
    name = f"recording-{call_id}-{secrets.token_hex(6)}.{_extension_for(ref)}"
    return base / name


@asynccontextmanager
async def acquire_recording(
    ref: str,
    call_id: UUID | str,
    fetcher: RecordingFetcher,
    *,
    temp_dir: Path | None = None,
) -> AsyncIterator[Path]:
    """Yield a readable local path for ``ref``.

    Local paths are yielded untouched and stay owned by the caller. Remote
    recordings are buffered into a temp file that is removed on exit.
    """

    if not is_remote_reference(ref):
        local_path = Path(ref)
        if not local_path.is_file():
            raise RecordingFetchError(f"Recording file not found: {ref}")
        yield local_path
        return

    audio_bytes = await fetcher.fetch(ref)
    temp_path = temp_recording_path(call_id, ref, temp_dir)
    try:
        temp_path.write_bytes(audio_bytes)
    except OSError as exc:
        temp_path.unlink(missing_ok=True)
        raise RecordingFetchError(f"Could not buffer recording to disk: {exc}") from exc

    logger.debug("Buffered %s bytes for call %s at %s", len(audio_bytes), call_id, temp_path)
    try:
        yield temp_path
    finally:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove temp recording %s: %s", temp_path, exc)


__all__ = ["acquire_recording", "temp_recording_path"]
