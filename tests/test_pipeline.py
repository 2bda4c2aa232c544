"""End-to-end behaviour of the call pipeline with fake external clients."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from callscribe.models.call import CallStatus
from callscribe.models.transcription import PLACEHOLDER_CONFIDENCE
from callscribe.pipelines.calls import CallPipelineMap
from callscribe.pipelines.calls import orchestrator as orchestrator_module
from callscribe.services.call_repository import (
    PIPELINE_ERROR_KEY,
    CallRepository,
    PersistenceError,
    TranscriptionRepository,
)
from callscribe.services.llm_client import LlmInvocationError
from callscribe.services.recordings import RecordingFetchError
from callscribe.services.transcribe import TranscriptionServiceError

from conftest import TRANSCRIPT_TEXT, FakeLlmClient, FakeTranscriber, RecordingServer

RECORDING_URL = "https://api.twilio.com/2010-04-01/Accounts/AC123/Recordings/RE9.mp3"


async def _pending_call(calls_repo: CallRepository, ref: str | None, sid: str = "CA200"):
    return await calls_repo.create(
        call_sid=sid,
        from_number="+15550001111",
        to_number="+15551234567",
        recording_ref=ref,
    )


async def test_successful_run_completes_call(
    pipeline, calls_repo, transcriptions_repo, audio_file: Path
) -> None:
    call = await _pending_call(calls_repo, str(audio_file))

    transcription = await pipeline.process(call.id, str(audio_file))
    await pipeline.supervisor.drain()

    stored_call = await calls_repo.get(call.id)
    assert stored_call.status == CallStatus.COMPLETE
    assert stored_call.transcription_id == transcription.id
    stored = await transcriptions_repo.get(transcription.id)
    assert stored.text == TRANSCRIPT_TEXT
    assert stored.confidence == PLACEHOLDER_CONFIDENCE
    assert stored.summary.startswith("Customer needs help")
    assert stored.categories == ["technical issue", "product support"]
    assert stored.tags == ["router", "reset", "purchase"]


async def test_transient_transcription_failures_are_retried(
    pipeline, calls_repo, transcriber: FakeTranscriber, audio_file: Path
) -> None:
    transcriber.failures = 2
    call = await _pending_call(calls_repo, str(audio_file))

    await pipeline.process(call.id, str(audio_file))

    assert transcriber.calls == 3
    assert (await calls_repo.get(call.id)).status == CallStatus.COMPLETE


async def test_exhausted_transcription_fails_call_without_transcription(
    pipeline,
    calls_repo,
    transcriptions_repo: TranscriptionRepository,
    transcriber: FakeTranscriber,
    audio_file: Path,
) -> None:
    transcriber.failures = -1
    call = await _pending_call(calls_repo, str(audio_file))

    with pytest.raises(TranscriptionServiceError):
        await pipeline.process(call.id, str(audio_file))

    assert transcriber.calls == 3
    failed = await calls_repo.get(call.id)
    assert failed.status == CallStatus.FAILED
    assert failed.transcription_id is None
    assert "Whisper unavailable" in failed.metadata_[PIPELINE_ERROR_KEY]
    assert await transcriptions_repo.list_recent() == []


async def test_malformed_analysis_leaves_defaults_and_call_complete(
    pipeline, calls_repo, transcriptions_repo, llm_client: FakeLlmClient, audio_file: Path
) -> None:
    llm_client.responses = ["Sorry, I can only answer in prose."]
    call = await _pending_call(calls_repo, str(audio_file))

    transcription = await pipeline.process(call.id, str(audio_file))
    await pipeline.supervisor.drain()

    stored = await transcriptions_repo.get(transcription.id)
    assert stored.text == TRANSCRIPT_TEXT
    assert stored.summary is None
    assert stored.categories == []
    assert stored.tags == []
    assert len(llm_client.calls) == 3
    assert (await calls_repo.get(call.id)).status == CallStatus.COMPLETE


async def test_analysis_provider_outage_never_touches_call(
    pipeline, calls_repo, llm_client: FakeLlmClient, audio_file: Path
) -> None:
    llm_client.responses = [LlmInvocationError("503 from provider")]
    call = await _pending_call(calls_repo, str(audio_file))

    await pipeline.process(call.id, str(audio_file))
    await pipeline.supervisor.drain()

    stored = await calls_repo.get(call.id)
    assert stored.status == CallStatus.COMPLETE
    assert PIPELINE_ERROR_KEY not in stored.metadata_


async def test_remote_recording_is_downloaded_and_cleaned_up(
    pipeline, calls_repo, transcriber: FakeTranscriber, recording_server: RecordingServer
) -> None:
    call = await _pending_call(calls_repo, RECORDING_URL)

    await pipeline.process(call.id, RECORDING_URL)

    assert len(recording_server.requests) == 1
    assert transcriber.seen_existing == [True]
    assert transcriber.seen_paths[0].name.startswith(f"recording-{call.id}-")
    assert not transcriber.seen_paths[0].exists()


async def test_download_failure_fails_call_without_retrying(
    pipeline, calls_repo, transcriber: FakeTranscriber, recording_server: RecordingServer
) -> None:
    recording_server.status_code = 500
    call = await _pending_call(calls_repo, RECORDING_URL)

    with pytest.raises(RecordingFetchError):
        await pipeline.process(call.id, RECORDING_URL)

    assert len(recording_server.requests) == 1
    assert transcriber.calls == 0
    assert (await calls_repo.get(call.id)).status == CallStatus.FAILED


async def test_missing_local_recording_fails_call(
    pipeline, calls_repo, tmp_path: Path
) -> None:
    ref = str(tmp_path / "never-uploaded.mp3")
    call = await _pending_call(calls_repo, ref)

    with pytest.raises(RecordingFetchError):
        await pipeline.process(call.id, ref)

    assert (await calls_repo.get(call.id)).status == CallStatus.FAILED


async def test_completed_call_is_not_processed_again(
    pipeline, calls_repo, transcriber: FakeTranscriber, audio_file: Path
) -> None:
    call = await _pending_call(calls_repo, str(audio_file))
    await pipeline.process(call.id, str(audio_file))

    assert await pipeline.process(call.id, str(audio_file)) is None
    assert transcriber.calls == 1


async def test_concurrent_runs_for_one_call_execute_once(
    pipeline, calls_repo, transcriptions_repo, transcriber: FakeTranscriber, audio_file: Path
) -> None:
    call = await _pending_call(calls_repo, str(audio_file))

    results = await asyncio.gather(
        pipeline.process(call.id, str(audio_file)),
        pipeline.process(call.id, str(audio_file)),
    )

    assert sum(result is not None for result in results) == 1
    assert transcriber.calls == 1
    assert len(await transcriptions_repo.list_recent()) == 1


async def test_orphan_transcription_removed_when_completion_fails(
    pipeline,
    calls_repo,
    transcriptions_repo,
    audio_file: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    call = await _pending_call(calls_repo, str(audio_file))

    async def broken_mark_complete(call_id, transcription_id):
        raise PersistenceError("connection dropped")

    monkeypatch.setattr(CallRepository, "mark_complete", staticmethod(broken_mark_complete))

    with pytest.raises(PersistenceError):
        await pipeline.process(call.id, str(audio_file))

    failed = await calls_repo.get(call.id)
    assert failed.status == CallStatus.FAILED
    assert failed.transcription_id is None
    assert await transcriptions_repo.list_recent() == []


async def test_failed_status_write_does_not_mask_original_error(
    pipeline,
    calls_repo,
    transcriber: FakeTranscriber,
    audio_file: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    transcriber.failures = -1
    call = await _pending_call(calls_repo, str(audio_file))

    async def broken_mark_failed(call_id, error):
        raise PersistenceError("database went away")

    monkeypatch.setattr(CallRepository, "mark_failed", staticmethod(broken_mark_failed))

    with pytest.raises(TranscriptionServiceError):
        await pipeline.process(call.id, str(audio_file))


async def test_scheduled_run_is_owned_by_supervisor(
    pipeline, calls_repo, audio_file: Path
) -> None:
    call = await _pending_call(calls_repo, str(audio_file))

    pipeline.schedule(call.id, str(audio_file), delay=0.01)
    assert pipeline.supervisor.pending == 1
    await pipeline.supervisor.drain()

    assert pipeline.supervisor.pending == 0
    assert (await calls_repo.get(call.id)).status == CallStatus.COMPLETE


async def test_resume_stranded_reprocesses_interrupted_calls(
    pipeline, calls_repo, audio_file: Path
) -> None:
    interrupted = await _pending_call(calls_repo, str(audio_file), sid="CA1")
    await calls_repo.claim_for_processing(interrupted.id)
    queued = await _pending_call(calls_repo, str(audio_file), sid="CA2")
    no_audio = await _pending_call(calls_repo, None, sid="CA3")

    resumed = await pipeline.resume_stranded()
    await pipeline.supervisor.drain()

    assert resumed == 2
    assert (await calls_repo.get(interrupted.id)).status == CallStatus.COMPLETE
    assert (await calls_repo.get(queued.id)).status == CallStatus.COMPLETE
    assert (await calls_repo.get(no_audio.id)).status == CallStatus.PENDING


def test_stage_map_lists_processing_order() -> None:
    assert CallPipelineMap.stage_names() == [
        "ingestion",
        "acquisition",
        "transcription",
        "persistence",
        "analysis",
    ]
    retried = [stage.name for stage in CallPipelineMap.describe() if stage.retried]
    assert retried == ["Transcription", "Analysis"]


async def test_acquisition_timing_excludes_transcription(
    pipeline, calls_repo, transcriber: FakeTranscriber, audio_file: Path, monkeypatch
) -> None:
    stages: dict[str, float] = {}
    monkeypatch.setattr(
        orchestrator_module, "observe_stage", lambda stage, seconds: stages.setdefault(stage, seconds)
    )
    transcribe = transcriber.transcribe

    async def slow_transcribe(audio_path: Path):
        await asyncio.sleep(0.2)
        return await transcribe(audio_path)

    monkeypatch.setattr(transcriber, "transcribe", slow_transcribe)
    call = await _pending_call(calls_repo, str(audio_file))

    await pipeline.process(call.id, str(audio_file))

    assert stages["transcription"] >= 0.19
    assert stages["acquisition"] < 0.19
