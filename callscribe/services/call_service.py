"""Application-facing operations on calls and transcriptions.

Controllers and the Twilio webhook only talk to :class:`CallService`; it owns
the repositories and decides when the pipeline is scheduled.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional
from uuid import UUID

from fastapi import UploadFile

from callscribe.models.call import STARTABLE_STATUSES, Call, CallStatus
from callscribe.models.transcription import Transcription
from callscribe.pipelines.calls import CallPipeline, save_upload
from callscribe.services.call_repository import (
    PIPELINE_ERROR_KEY,
    CallRepository,
    DuplicateCallError,
    TranscriptionRepository,
)
from callscribe.services.recordings import is_remote_reference

logger = logging.getLogger(__name__)


class CallNotFoundError(LookupError):
    """Raised when a call id does not exist."""


class TranscriptionNotFoundError(LookupError):
    """Raised when a transcription id does not exist."""


class CallStateError(ValueError):
    """Raised when an operation is not allowed in the call's current status."""


@dataclass(frozen=True)
class TranscriptionDigest:
    text: str
    summary: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CallStatusProjection:
    """Read-only view of where a call is in the pipeline."""

    call_id: UUID
    status: CallStatus
    from_number: str
    to_number: str
    created_at: Optional[datetime] = None
    transcription: Optional[TranscriptionDigest] = None
    error: Optional[str] = None


def _project(call: Call, transcription: Transcription | None) -> CallStatusProjection:
    digest = None
    if transcription is not None:
        digest = TranscriptionDigest(
            text=transcription.text,
            summary=transcription.summary,
            categories=list(transcription.categories or []),
            tags=list(transcription.tags or []),
        )
    error = None
    if call.status == CallStatus.FAILED:
        error = (call.metadata_ or {}).get(PIPELINE_ERROR_KEY)
    return CallStatusProjection(
        call_id=call.id,
        status=call.status,
        from_number=call.from_number,
        to_number=call.to_number,
        created_at=call.created_at,
        transcription=digest,
        error=error,
    )


class CallService:
    def __init__(
        self,
        *,
        calls: CallRepository,
        transcriptions: TranscriptionRepository,
        pipeline: CallPipeline,
        upload_dir: Path,
        max_upload_bytes: int,
        allowed_mime_prefix: str = "audio/",
        simulated_delay: float = 0.0,
        default_phone_number: str = "+15551234567",
    ) -> None:
        self._calls = calls
        self._transcriptions = transcriptions
        self._pipeline = pipeline
        self._upload_dir = upload_dir
        self._max_upload_bytes = max_upload_bytes
        self._allowed_mime_prefix = allowed_mime_prefix
        self._simulated_delay = simulated_delay
        self._default_phone_number = default_phone_number

    @property
    def pipeline(self) -> CallPipeline:
        return self._pipeline

    # Calls -----------------------------------------------------------------

    async def create_call(
        self,
        *,
        call_sid: str,
        from_number: str,
        to_number: str,
        recording_ref: Optional[str] = None,
        duration: int = 0,
        metadata: Optional[Mapping[str, Any]] = None,
        delay: float = 0.0,
    ) -> Call:
        """Create a pending call and schedule the pipeline if audio is attached."""

        call = await self._calls.create(
            call_sid=call_sid,
            from_number=from_number,
            to_number=to_number,
            recording_ref=recording_ref,
            duration=duration,
            metadata=metadata,
        )
        logger.info("Created call %s (sid=%s)", call.id, call.call_sid)
        if recording_ref:
            self._pipeline.schedule(call.id, recording_ref, delay=delay)
        return call

    async def list_calls(self) -> list[Call]:
        return await self._calls.list_recent()

    async def get_call(self, call_id: UUID) -> Call:
        call = await self._calls.get(call_id)
        if call is None:
            raise CallNotFoundError(f"Call {call_id} not found")
        return call

    async def get_call_status(self, call_id: UUID) -> CallStatusProjection:
        row = await self._calls.get_with_transcription(call_id)
        if row is None:
            raise CallNotFoundError(f"Call {call_id} not found")
        return _project(*row)

    async def list_call_statuses(self) -> list[CallStatusProjection]:
        rows = await self._calls.list_with_transcriptions()
        return [_project(call, transcription) for call, transcription in rows]

    async def delete_call(self, call_id: UUID) -> None:
        """Delete the call, its transcriptions and any recording uploaded for it."""

        call = await self.get_call(call_id)
        if not await self._calls.delete(call_id):
            raise CallNotFoundError(f"Call {call_id} not found")
        logger.info("Deleted call %s", call_id)
        if call.recording_ref:
            self._remove_upload(call.recording_ref)

    def _remove_upload(self, recording_ref: str) -> None:
        # Only files under the upload directory were stored by this service.
        if is_remote_reference(recording_ref):
            return
        path = Path(recording_ref).resolve()
        if not path.is_relative_to(self._upload_dir.resolve()):
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove uploaded recording %s: %s", path, exc)

    async def record_from_webhook(
        self,
        *,
        call_sid: str,
        from_number: str,
        to_number: str,
        recording_url: Optional[str],
        duration: int = 0,
    ) -> Call:
        """Create or update the call behind a Twilio recording callback."""

        call = await self._calls.get_by_sid(call_sid)
        if call is None:
            try:
                call = await self._calls.create(
                    call_sid=call_sid,
                    from_number=from_number,
                    to_number=to_number,
                    recording_ref=recording_url,
                    duration=duration,
                    metadata={"source": "twilio"},
                )
            except DuplicateCallError:
                # Twilio retried the callback while the first insert was running.
                call = await self._calls.get_by_sid(call_sid)
                if call is None:
                    raise
        elif recording_url:
            call = await self._calls.update_fields(
                call.id,
                recording_ref=recording_url,
                duration=duration or call.duration,
            ) or call

        if recording_url and call.status in STARTABLE_STATUSES:
            self._pipeline.schedule(call.id, recording_url)
        return call

    async def retranscribe(self, call_id: UUID) -> Call:
        call = await self.get_call(call_id)
        if not call.recording_ref:
            raise CallStateError("Call has no recording to transcribe")
        if call.status not in STARTABLE_STATUSES or self._pipeline.is_running(call.id):
            raise CallStateError(
                f"Call cannot be transcribed while {call.status.value}"
            )
        self._pipeline.schedule(call.id, call.recording_ref)
        return call

    async def simulate_call(self, upload: UploadFile, from_number: Optional[str] = None) -> Call:
        """Store an uploaded recording and run it through the pipeline as a test call."""

        path = await save_upload(
            upload,
            self._upload_dir,
            max_bytes=self._max_upload_bytes,
            allowed_prefix=self._allowed_mime_prefix,
        )
        try:
            return await self.create_call(
                call_sid=f"test-{int(time.time() * 1000)}-{secrets.token_hex(4)}",
                from_number=from_number or self._default_phone_number,
                to_number=self._default_phone_number,
                recording_ref=str(path),
                metadata={"source": "upload", "filename": upload.filename or path.name},
                delay=self._simulated_delay,
            )
        except Exception:
            path.unlink(missing_ok=True)
            raise

    # Transcriptions --------------------------------------------------------

    async def list_transcriptions(self) -> list[Transcription]:
        return await self._transcriptions.list_recent()

    async def get_transcription(self, transcription_id: UUID) -> Transcription:
        transcription = await self._transcriptions.get(transcription_id)
        if transcription is None:
            raise TranscriptionNotFoundError(f"Transcription {transcription_id} not found")
        return transcription

    async def create_transcription(
        self,
        *,
        call_id: UUID,
        text: str,
        confidence: float = 0.0,
    ) -> Transcription:
        """Attach a manually supplied transcript and mark the call complete."""

        transcription = await self._transcriptions.create(
            call_id=call_id,
            text=text,
            confidence=confidence,
        )
        if transcription is None:
            raise CallNotFoundError(f"Call {call_id} not found")
        await self._calls.mark_complete(call_id, transcription.id)
        return transcription

    async def update_transcription(
        self,
        transcription_id: UUID,
        *,
        text: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> Transcription:
        fields: dict[str, Any] = {}
        if text is not None:
            fields["text"] = text
        if confidence is not None:
            fields["confidence"] = confidence
        if not fields:
            return await self.get_transcription(transcription_id)

        transcription = await self._transcriptions.update_fields(transcription_id, **fields)
        if transcription is None:
            raise TranscriptionNotFoundError(f"Transcription {transcription_id} not found")
        return transcription

    async def delete_transcription(self, transcription_id: UUID) -> None:
        if await self._transcriptions.delete(transcription_id) is None:
            raise TranscriptionNotFoundError(f"Transcription {transcription_id} not found")
        logger.info("Deleted transcription %s", transcription_id)

    # Health ----------------------------------------------------------------

    async def store_available(self) -> bool:
        return await self._calls.ping()


__all__ = [
    "CallNotFoundError",
    "CallService",
    "CallStateError",
    "CallStatusProjection",
    "TranscriptionDigest",
    "TranscriptionNotFoundError",
]
