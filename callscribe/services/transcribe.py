"""OpenAI Whisper integration helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from openai import AsyncOpenAI, OpenAIError

from callscribe.config.settings import settings
from callscribe.services.openai_client import create_openai_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptResult:
    """Structured transcription outcome returned to the pipeline."""

    text: str
    language: str | None = None


class TranscriptionServiceError(RuntimeError):
    """Raised when the speech-to-text service fails to return a transcript."""


class TranscribeService:
    """Thin facade over the Whisper transcription endpoint.

    The service never retries on its own; the pipeline composes it with a
    retry policy. Every call reopens the audio file so repeated attempts read
    the stream from the start.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "whisper-1",
        language: str = "en",
        temperature: float = 0.2,
    ) -> None:
        self._client = client
        self._model = model
        self._language = language
        self._temperature = temperature

    async def transcribe(self, audio_path: Path) -> TranscriptResult:
        """Send the audio file to Whisper and return the transcript text."""

        try:
            with Path(audio_path).open("rb") as audio_file:
                response = await self._client.audio.transcriptions.create(
                    file=audio_file,
                    model=self._model,
                    language=self._language,
                    response_format="json",
                    temperature=self._temperature,
                )
        except OpenAIError as exc:
            raise TranscriptionServiceError(f"Whisper request failed: {exc}") from exc
        except OSError as exc:
            raise TranscriptionServiceError(f"Could not read audio file: {exc}") from exc

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise TranscriptionServiceError("Whisper returned an empty transcript.")

        logger.info("Transcription complete. Length: %s", len(text))
        return TranscriptResult(text=text, language=self._language)


@lru_cache(maxsize=1)
def get_transcribe_service() -> TranscribeService:
    """Return a lazily-instantiated transcribe service singleton."""

    return TranscribeService(
        create_openai_client(),
        model=settings.openai.transcription_model,
        language=settings.openai.transcription_language,
        temperature=settings.openai.transcription_temperature,
    )


__all__ = [
    "TranscribeService",
    "TranscriptResult",
    "TranscriptionServiceError",
    "get_transcribe_service",
]
