"""Drive one call from recording reference to a finished transcription."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from uuid import UUID

from callscribe.models.call import CallStatus
from callscribe.models.transcription import PLACEHOLDER_CONFIDENCE, Transcription
from callscribe.pipelines.calls.acquisition import acquire_recording
from callscribe.pipelines.calls.supervisor import PipelineSupervisor
from callscribe.services.analysis import AnalysisService
from callscribe.services.call_repository import CallRepository, TranscriptionRepository
from callscribe.services.recordings import RecordingFetcher
from callscribe.services.retry import RetryPolicy
from callscribe.services.transcribe import TranscribeService
from callscribe.telemetry import observe_pipeline_run, observe_stage

logger = logging.getLogger("callscribe.pipeline")
transcript_logger = logging.getLogger("callscribe.logs.transcript")


class PipelineError(RuntimeError):
    """Raised when the call record changes underneath a running pipeline."""


@contextmanager
def _timed(stage: str) -> Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        observe_stage(stage, time.perf_counter() - started)


class CallPipeline:
    """Transcribe a call recording and record the outcome on the call.

    All collaborators are injected so tests can substitute fakes. A call is
    processed by at most one run at a time: the in-process active set covers
    concurrent schedules, the repository's compare-and-set covers the rest.
    """

    def __init__(
        self,
        *,
        calls: CallRepository,
        transcriptions: TranscriptionRepository,
        transcriber: TranscribeService,
        analyzer: AnalysisService,
        fetcher: RecordingFetcher,
        supervisor: PipelineSupervisor,
        retry_policy: RetryPolicy = RetryPolicy(),
        temp_dir: Optional[Path] = None,
    ) -> None:
        self._calls = calls
        self._transcriptions = transcriptions
        self._transcriber = transcriber
        self._analyzer = analyzer
        self._fetcher = fetcher
        self._supervisor = supervisor
        self._retry = retry_policy
        self._temp_dir = temp_dir
        self._active: set[UUID] = set()

    @property
    def supervisor(self) -> PipelineSupervisor:
        return self._supervisor

    def is_running(self, call_id: UUID) -> bool:
        return call_id in self._active

    def schedule(self, call_id: UUID, recording_ref: str, delay: float = 0.0) -> asyncio.Task:
        """Hand a run to the supervisor; the caller does not wait for it."""

        logger.info("Scheduling pipeline for call %s (delay %.1fs)", call_id, delay)
        return self._supervisor.spawn(
            self.process(call_id, recording_ref),
            name=f"pipeline-{call_id}",
            delay=delay,
        )

    async def process(self, call_id: UUID, recording_ref: str) -> Optional[Transcription]:
        """Run the pipeline for one call.

        Returns the new transcription, or None when the run was skipped
        because another run owns the call or it is already finished. Errors
        are recorded on the call and then re-raised.
        """

        if call_id in self._active:
            logger.info("Call %s is already being processed; skipping", call_id)
            observe_pipeline_run("skipped")
            return None

        self._active.add(call_id)
        try:
            if not await self._calls.claim_for_processing(call_id):
                logger.info("Call %s is not in a startable state; skipping", call_id)
                observe_pipeline_run("skipped")
                return None
            return await self._run(call_id, recording_ref)
        finally:
            self._active.discard(call_id)

    async def _run(self, call_id: UUID, recording_ref: str) -> Transcription:
        logger.info("Pipeline started for call %s", call_id)
        try:
            acquiring = time.perf_counter()
            async with acquire_recording(
                recording_ref, call_id, self._fetcher, temp_dir=self._temp_dir
            ) as audio_path:
                observe_stage("acquisition", time.perf_counter() - acquiring)
                with _timed("transcription"):
                    transcript = await self._retry.run(
                        lambda: self._transcriber.transcribe(audio_path),
                        label="transcription",
                    )

            transcript_logger.info("call=%s transcript=%s", call_id, transcript.text)

            with _timed("persistence"):
                transcription = await self._transcriptions.create(
                    call_id=call_id,
                    text=transcript.text,
                    confidence=PLACEHOLDER_CONFIDENCE,
                )
            if transcription is None:
                raise PipelineError(f"Call {call_id} was removed during transcription")

            await self._complete(call_id, transcription)
        except Exception as exc:
            logger.error("Pipeline failed for call %s: %s", call_id, exc)
            await self._fail(call_id, exc)
            observe_pipeline_run("failed")
            raise

        observe_pipeline_run("completed")
        logger.info("Pipeline completed for call %s", call_id)
        self._supervisor.spawn(
            self.analyze(transcription.id, transcript.text),
            name=f"analysis-{call_id}",
        )
        return transcription

    async def _complete(self, call_id: UUID, transcription: Transcription) -> None:
        try:
            call = await self._calls.mark_complete(call_id, transcription.id)
            if call is None:
                raise PipelineError(f"Call {call_id} was removed before completion")
        except Exception:
            try:
                await self._transcriptions.discard(transcription.id)
            except Exception as cleanup_exc:
                logger.error(
                    "Could not remove orphan transcription %s: %s",
                    transcription.id,
                    cleanup_exc,
                )
            raise

    async def _fail(self, call_id: UUID, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        try:
            await self._calls.mark_failed(call_id, message)
        except Exception as write_exc:
            logger.error("Could not mark call %s as failed: %s", call_id, write_exc)

    async def analyze(self, transcription_id: UUID, text: str) -> bool:
        """Best-effort analysis follow-up; failures never touch the call."""

        try:
            with _timed("analysis"):
                result = await self._retry.run(
                    lambda: self._analyzer.analyze(text),
                    label="analysis",
                )
            updated = await self._transcriptions.update_fields(
                transcription_id,
                summary=result.summary,
                categories=result.categories,
                tags=result.tags,
            )
        except Exception as exc:
            logger.warning("Analysis skipped for transcription %s: %s", transcription_id, exc)
            return False

        if updated is None:
            logger.info("Transcription %s removed before analysis finished", transcription_id)
            return False
        logger.info(
            "Analysis stored for transcription %s (%s categories, %s tags)",
            transcription_id,
            len(result.categories),
            len(result.tags),
        )
        return True

    async def resume_stranded(self) -> int:
        """Re-schedule calls a previous process left unfinished."""

        stranded = await self._calls.list_by_status(
            (CallStatus.IN_PROGRESS, CallStatus.PENDING)
        )
        resumed = 0
        for call in stranded:
            if not call.recording_ref or call.id in self._active:
                continue
            if call.status == CallStatus.IN_PROGRESS:
                await self._calls.update_fields(call.id, status=CallStatus.PENDING)
            self.schedule(call.id, call.recording_ref)
            resumed += 1

        if resumed:
            logger.warning("Resumed %s stranded call(s)", resumed)
        return resumed


__all__ = ["CallPipeline", "PipelineError"]
