"""Factory for the process-wide async OpenAI client."""

from __future__ import annotations

from openai import AsyncOpenAI

from callscribe.config.settings import settings


def create_openai_client() -> AsyncOpenAI:
    """Build an async OpenAI client from settings.

    SDK-level retries are disabled; the pipeline's retry policy owns backoff.
    """

    api_key = settings.openai.api_key
    return AsyncOpenAI(
        api_key=api_key.get_secret_value() if api_key else None,
        base_url=settings.openai.base_url,
        timeout=settings.openai.timeout_seconds,
        max_retries=0,
    )


__all__ = ["create_openai_client"]
