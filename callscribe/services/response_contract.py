"""Pydantic models for validating LLM JSON responses.

The analysis stage runs every model answer through these schemas so that the
pipeline only ever stores normalized, type-safe values.
"""

from __future__ import annotations

import json
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class AnalysisParseError(ValueError):
    """Raised when the model answer is not the expected JSON object."""


class AnalysisResponse(BaseModel):
    summary: str = ""
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("summary", mode="before")
    @classmethod
    def _null_summary(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def _null_labels(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("categories", "tags")
    @classmethod
    def _dedupe_labels(cls, values: List[str]) -> List[str]:
        # Ordered set: keep first occurrence, drop blanks.
        labels: List[str] = []
        seen: set[str] = set()
        for item in values:
            label = item.strip()
            if label and label.lower() not in seen:
                seen.add(label.lower())
                labels.append(label)
        return labels

    @classmethod
    def from_json(cls, payload: str) -> "AnalysisResponse":
        cleaned = _clean_json_payload(payload)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise AnalysisParseError(f"Analysis response is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise AnalysisParseError("Analysis response must be a JSON object.")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise AnalysisParseError(f"Analysis response has the wrong shape: {exc}") from exc


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = ["AnalysisParseError", "AnalysisResponse"]
