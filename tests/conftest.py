"""Shared fixtures: a throwaway SQLite database and fake external clients."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from callscribe.config.dependencies import build_call_service
from callscribe.config.settings import settings
from callscribe.controllers.dependencies import get_call_service
from callscribe.database import init_models
from callscribe.main import create_app
from callscribe.services.analysis import AnalysisService
from callscribe.services.call_repository import CallRepository, TranscriptionRepository
from callscribe.services.recordings import RecordingFetcher
from callscribe.services.retry import RetryPolicy
from callscribe.services.transcribe import TranscriptionServiceError, TranscriptResult

TRANSCRIPT_TEXT = "Hi, this is Dana. I need help resetting the router I bought last week."
ANALYSIS_JSON = (
    '{"summary": "Customer needs help resetting a recently purchased router.", '
    '"categories": ["technical issue", "product support"], '
    '"tags": ["router", "reset", "purchase"]}'
)
RECORDING_BYTES = b"ID3\x03\x00fake-mp3-frames"


class FakeTranscriber:
    """Stand-in for the Whisper client; ``failures=-1`` fails every attempt."""

    def __init__(self, text: str = TRANSCRIPT_TEXT, failures: int = 0) -> None:
        self.text = text
        self.failures = failures
        self.calls = 0
        self.seen_paths: list[Path] = []
        self.seen_existing: list[bool] = []

    async def transcribe(self, audio_path: Path) -> TranscriptResult:
        self.calls += 1
        path = Path(audio_path)
        self.seen_paths.append(path)
        self.seen_existing.append(path.is_file())
        if self.failures < 0 or self.calls <= self.failures:
            raise TranscriptionServiceError(f"Whisper unavailable (attempt {self.calls})")
        return TranscriptResult(text=self.text, language="en")


class FakeLlmClient:
    """Returns queued answers in order; an exception instance is raised instead."""

    def __init__(self, *responses: object) -> None:
        self.responses = list(responses) or [ANALYSIS_JSON]
        self.calls: list[dict] = []

    async def invoke(self, *, system_prompt, user_prompt, temperature, json_mode=False) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "json_mode": json_mode,
            }
        )
        response = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class RecordingServer:
    """httpx transport handler that serves fake recordings."""

    def __init__(self, status_code: int = 200, body: bytes = RECORDING_BYTES) -> None:
        self.status_code = status_code
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'callscribe.db'}")
    await init_models(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest.fixture
def calls_repo(session_factory) -> CallRepository:
    return CallRepository(session_factory)


@pytest.fixture
def transcriptions_repo(session_factory) -> TranscriptionRepository:
    return TranscriptionRepository(session_factory)


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def llm_client() -> FakeLlmClient:
    return FakeLlmClient(ANALYSIS_JSON)


@pytest.fixture
def recording_server() -> RecordingServer:
    return RecordingServer()


@pytest.fixture
async def fetcher(recording_server: RecordingServer) -> AsyncIterator[RecordingFetcher]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(recording_server)) as client:
        yield RecordingFetcher(
            http_client=client,
            account_sid="AC123",
            auth_token="secret-token",
        )


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "voicemail.mp3"
    path.write_bytes(RECORDING_BYTES)
    return path


@pytest.fixture
async def call_service(
    session_factory,
    transcriber: FakeTranscriber,
    llm_client: FakeLlmClient,
    fetcher: RecordingFetcher,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setattr(settings.upload, "directory", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings.pipeline, "simulated_delay_seconds", 0.0)

    service = build_call_service(
        session_factory,
        transcriber=transcriber,
        analyzer=AnalysisService(llm_client),
        fetcher=fetcher,
        retry_policy=RetryPolicy(max_attempts=3, initial_delay=0.0),
    )
    yield service
    await service.pipeline.supervisor.drain(timeout=5)


@pytest.fixture
def pipeline(call_service):
    return call_service.pipeline


@pytest.fixture
def app(call_service):
    """Application with the call service swapped for the test-wired one."""

    application = create_app(configure_logging=False)
    application.dependency_overrides[get_call_service] = lambda: call_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


__all__ = [
    "ANALYSIS_JSON",
    "FakeLlmClient",
    "FakeTranscriber",
    "RECORDING_BYTES",
    "RecordingServer",
    "TRANSCRIPT_TEXT",
]
