"""Composition root: build the call service and its collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callscribe.config.settings import Settings, settings as default_settings
from callscribe.pipelines.calls import CallPipeline, PipelineSupervisor
from callscribe.services.analysis import AnalysisService, get_analysis_service
from callscribe.services.call_repository import CallRepository, TranscriptionRepository
from callscribe.services.call_service import CallService
from callscribe.services.recordings import RecordingFetcher, get_recording_fetcher
from callscribe.services.retry import RetryPolicy
from callscribe.services.transcribe import TranscribeService, get_transcribe_service


def build_retry_policy(config: Settings = default_settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.pipeline.max_attempts,
        initial_delay=config.pipeline.initial_delay_seconds,
        factor=config.pipeline.backoff_factor,
    )


def build_call_service(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    config: Settings = default_settings,
    transcriber: Optional[TranscribeService] = None,
    analyzer: Optional[AnalysisService] = None,
    fetcher: Optional[RecordingFetcher] = None,
    supervisor: Optional[PipelineSupervisor] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> CallService:
    """Wire repositories, clients and the pipeline into a :class:`CallService`.

    Every client can be swapped (tests pass fakes); the defaults come from
    the configured OpenAI/Bedrock/Twilio settings.
    """

    calls = CallRepository(session_factory)
    transcriptions = TranscriptionRepository(session_factory)
    pipeline = CallPipeline(
        calls=calls,
        transcriptions=transcriptions,
        transcriber=transcriber or get_transcribe_service(),
        analyzer=analyzer or get_analysis_service(),
        fetcher=fetcher or get_recording_fetcher(),
        supervisor=supervisor or PipelineSupervisor(),
        retry_policy=retry_policy or build_retry_policy(config),
    )
    return CallService(
        calls=calls,
        transcriptions=transcriptions,
        pipeline=pipeline,
        upload_dir=Path(config.upload.directory),
        max_upload_bytes=config.upload.max_bytes,
        allowed_mime_prefix=config.upload.allowed_mime_prefix,
        simulated_delay=config.pipeline.simulated_delay_seconds,
        default_phone_number=config.twilio.phone_number,
    )


__all__ = ["build_call_service", "build_retry_policy"]
