"""Chat-model clients used by the transcript analysis stage."""

from __future__ import annotations

import logging
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool
from openai import AsyncOpenAI, OpenAIError

from callscribe.config.settings import settings
from callscribe.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


class LlmInvocationError(RuntimeError):
    """Raised when the chat-model provider fails to answer."""


class LlmClient(Protocol):
    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        json_mode: bool = False,
    ) -> str: ...


class OpenAiLlmClient:
    """Run OpenAI chat completions and return the first choice's content."""

    def __init__(self, client: AsyncOpenAI, *, model: str) -> None:
        self._client = client
        self._model = model

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        kwargs = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            raise LlmInvocationError(str(exc)) from exc

        if not response.choices:
            raise LlmInvocationError("OpenAI returned no choices.")
        return (response.choices[0].message.content or "").strip()


class BedrockLlmClient:
    """Invoke Amazon Bedrock models with standard configuration."""

    def __init__(self, *, model_id: str | None = None) -> None:
        self._model_id = model_id or settings.bedrock.model_id
        self._client = create_boto3_client(
            "bedrock-runtime",
            region_name=settings.bedrock.region,
        )

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        """Run a Bedrock `converse` call and return the aggregate text output."""

        inference_cfg = {
            "maxTokens": settings.bedrock.max_tokens,
            "temperature": temperature,
            "topP": settings.bedrock.top_p,
        }
        if json_mode:
            # Bedrock has no JSON mode; the instruction and the response
            # cleaner carry the contract.
            system_prompt = f"{system_prompt}\nRespond with the JSON object only."

        def _call() -> str:
            response = self._client.converse(
                modelId=self._model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            texts = [block.get("text", "") for block in content_blocks if block.get("text")]
            return "\n".join(texts).strip()

        try:
            return await run_in_threadpool(_call)
        except (BotoCoreError, ClientError) as exc:  # pragma: no cover - external dependency
            raise LlmInvocationError(str(exc)) from exc


__all__ = ["BedrockLlmClient", "LlmClient", "LlmInvocationError", "OpenAiLlmClient"]
