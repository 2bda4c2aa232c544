"""Pydantic schemas for call records and pipeline status."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from callscribe.models.call import CallStatus

MetadataValue = Union[str, int, float, bool, None]


class CallCreateRequest(BaseModel):
    """Payload to register a call, optionally with a recording to transcribe."""

    callSid: str = Field(
        ...,
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("callSid", "call_sid"),
    )
    fromNumber: str = Field(
        ...,
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("from", "fromNumber", "from_number"),
    )
    toNumber: str = Field(
        ...,
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("to", "toNumber", "to_number"),
    )
    recordingUrl: Optional[str] = Field(
        None,
        max_length=2048,
        validation_alias=AliasChoices("recordingUrl", "recording_url"),
    )
    duration: int = Field(0, ge=0)
    # Producers should keep to a stable key set; values must be JSON primitives.
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)


class CallResponse(BaseModel):
    """Full call record."""

    id: UUID
    callSid: str = Field(
        ...,
        validation_alias=AliasChoices("callSid", "call_sid"),
        serialization_alias="callSid",
    )
    fromNumber: str = Field(
        ...,
        validation_alias=AliasChoices("fromNumber", "from_number"),
        serialization_alias="from",
    )
    toNumber: str = Field(
        ...,
        validation_alias=AliasChoices("toNumber", "to_number"),
        serialization_alias="to",
    )
    duration: int = 0
    recordingUrl: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("recordingUrl", "recording_ref"),
        serialization_alias="recordingUrl",
    )
    transcriptionId: Optional[UUID] = Field(
        None,
        validation_alias=AliasChoices("transcriptionId", "transcription_id"),
        serialization_alias="transcriptionId",
    )
    status: CallStatus
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
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


class TranscriptionDigestResponse(BaseModel):
    text: str
    summary: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class CallStatusResponse(BaseModel):
    """Where a call is in the pipeline, with its transcript once available."""

    callId: UUID = Field(..., serialization_alias="callId")
    status: CallStatus
    fromNumber: str = Field(..., serialization_alias="from")
    toNumber: str = Field(..., serialization_alias="to")
    transcription: Optional[TranscriptionDigestResponse] = None
    error: Optional[str] = None

    class Config:
        populate_by_name = True


class CallListItem(BaseModel):
    """Compact row for the test console listing."""

    callId: UUID = Field(..., serialization_alias="callId")
    status: CallStatus
    fromNumber: str = Field(..., serialization_alias="from")
    toNumber: str = Field(..., serialization_alias="to")
    createdAt: Optional[datetime] = Field(None, serialization_alias="createdAt")
    transcription: Optional[Dict[str, Optional[str]]] = None

    class Config:
        populate_by_name = True


class SimulatedCallResponse(BaseModel):
    message: str
    callId: UUID
    status: str


class TranscribeAcceptedResponse(BaseModel):
    message: str
    callId: UUID
