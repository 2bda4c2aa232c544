"""Pydantic schemas for transcription records."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class TranscriptionCreateRequest(BaseModel):
    """Manually attach a transcript to an existing call."""

    callId: UUID = Field(..., validation_alias=AliasChoices("callId", "call_id"))
    text: str = Field(..., min_length=1)
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class TranscriptionUpdateRequest(BaseModel):
    text: Optional[str] = Field(None, min_length=1)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class TranscriptionResponse(BaseModel):
    """Transcript text plus whatever analysis has been stored so far.

    ``confidence`` is a fixed placeholder for pipeline-produced transcripts.
    """

    id: UUID
    callId: UUID = Field(
        ...,
        validation_alias=AliasChoices("callId", "call_id"),
        serialization_alias="callId",
    )
    text: str
    confidence: float = 0.0
    summary: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    createdAt: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )
    updatedAt: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )

    class Config:
        populate_by_name = True
        from_attributes = True
