"""Transcript summarisation and categorisation through a chat model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache

from callscribe.config.settings import settings
from callscribe.services.llm_client import (
    BedrockLlmClient,
    LlmClient,
    LlmInvocationError,
    OpenAiLlmClient,
)
from callscribe.services.openai_client import create_openai_client
from callscribe.services.response_contract import AnalysisResponse

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert at analyzing business call transcriptions. "
    "Analyze the following call transcription and provide: "
    "1. A brief summary of the call (2-3 sentences) "
    '2. A list of 3-5 categories that describe the call content (e.g., "product inquiry", "technical issue") '
    "3. A list of 5-10 important keywords or tags from the call "
    'Format your response as a JSON object with exactly these keys: "summary" (string), '
    '"categories" (array of strings), and "tags" (array of strings)'
)


@dataclass(frozen=True)
class AnalysisResult:
    summary: str
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


class AnalysisServiceError(RuntimeError):
    """Raised when the language-model provider cannot be reached."""


class AnalysisService:
    """Ask a chat model for a summary, categories and tags of a transcript."""

    def __init__(self, client: LlmClient, *, temperature: float = 0.3) -> None:
        self._client = client
        self._temperature = temperature

    async def analyze(self, transcript_text: str) -> AnalysisResult:
        try:
            raw_response = await self._client.invoke(
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
                user_prompt=transcript_text,
                temperature=self._temperature,
                json_mode=True,
            )
        except LlmInvocationError as exc:
            raise AnalysisServiceError(str(exc)) from exc

        # AnalysisParseError propagates so the retry policy can ask again.
        parsed = AnalysisResponse.from_json(raw_response)
        return AnalysisResult(
            summary=parsed.summary,
            categories=list(parsed.categories),
            tags=list(parsed.tags),
        )


@lru_cache(maxsize=1)
def get_analysis_service() -> AnalysisService:
    """Return the analysis service for the configured provider."""

    provider = settings.pipeline.analysis_provider
    if provider == "bedrock":
        client: LlmClient = BedrockLlmClient()
    else:
        client = OpenAiLlmClient(
            create_openai_client(),
            model=settings.openai.analysis_model,
        )
    logger.info("Transcript analysis provider: %s", provider)
    return AnalysisService(client, temperature=settings.openai.analysis_temperature)


__all__ = [
    "ANALYSIS_SYSTEM_PROMPT",
    "AnalysisResult",
    "AnalysisService",
    "AnalysisServiceError",
    "get_analysis_service",
]
