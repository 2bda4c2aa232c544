"""Upload validation and storage."""

from __future__ import annotations

import io
import re
import time
from pathlib import Path

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from callscribe.pipelines.calls import AudioValidationError, save_upload


def _upload(data: bytes, filename: str, content_type: str | None) -> UploadFile:
    headers = Headers({"content-type": content_type}) if content_type else Headers({})
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=headers)


async def test_audio_upload_is_saved_with_unique_timestamped_name(tmp_path: Path) -> None:
    data = b"\x00" * 4096

    path = await save_upload(_upload(data, "voicemail.mp3", "audio/mpeg"), tmp_path, max_bytes=10_000)

    assert re.fullmatch(r"call-\d+-[0-9a-f]{12}\.mp3", path.name)
    assert path.parent == tmp_path
    assert path.read_bytes() == data


async def test_content_type_is_guessed_from_filename(tmp_path: Path) -> None:
    path = await save_upload(_upload(b"RIFF", "note.wav", None), tmp_path, max_bytes=100)

    assert path.suffix == ".wav"


async def test_uploads_in_the_same_millisecond_get_distinct_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(time, "time", lambda: 1_700_000_000.0)

    first = await save_upload(_upload(b"one", "a.mp3", "audio/mpeg"), tmp_path, max_bytes=100)
    second = await save_upload(_upload(b"two", "a.mp3", "audio/mpeg"), tmp_path, max_bytes=100)

    assert first != second
    assert first.read_bytes() == b"one"
    assert second.read_bytes() == b"two"


async def test_declared_octet_stream_is_rejected_despite_audio_filename(tmp_path: Path) -> None:
    upload = _upload(b"not audio at all", "message.mp3", "application/octet-stream")

    with pytest.raises(AudioValidationError) as excinfo:
        await save_upload(upload, tmp_path, max_bytes=100)

    assert excinfo.value.status_code == 400
    assert list(tmp_path.iterdir()) == []


async def test_non_audio_upload_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(AudioValidationError) as excinfo:
        await save_upload(_upload(b"hello", "notes.txt", "text/plain"), tmp_path, max_bytes=100)

    assert excinfo.value.status_code == 400
    assert list(tmp_path.iterdir()) == []


async def test_oversize_upload_is_rejected_and_removed(tmp_path: Path) -> None:
    upload = _upload(b"\x01" * 2048, "big.mp3", "audio/mpeg")

    with pytest.raises(AudioValidationError) as excinfo:
        await save_upload(upload, tmp_path, max_bytes=1024)

    assert excinfo.value.status_code == 413
    assert list(tmp_path.iterdir()) == []


async def test_empty_upload_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(AudioValidationError, match="empty"):
        await save_upload(_upload(b"", "silence.mp3", "audio/mpeg"), tmp_path, max_bytes=100)

    assert list(tmp_path.iterdir()) == []
