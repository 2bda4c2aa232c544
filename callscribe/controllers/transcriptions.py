"""Transcription endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status

from callscribe.controllers.dependencies import CallServiceDep
from callscribe.models.transcription import Transcription
from callscribe.views import (
    MessageResponse,
    TranscriptionCreateRequest,
    TranscriptionResponse,
    TranscriptionUpdateRequest,
)

router = APIRouter(prefix="/api/transcriptions", tags=["transcriptions"])


def serialize_transcription(transcription: Transcription) -> TranscriptionResponse:
    return TranscriptionResponse(
        id=transcription.id,
        callId=transcription.call_id,
        text=transcription.text,
        confidence=transcription.confidence or 0.0,
        summary=transcription.summary,
        categories=list(transcription.categories or []),
        tags=list(transcription.tags or []),
        createdAt=transcription.created_at,
        updatedAt=transcription.updated_at,
    )


@router.get("", response_model=list[TranscriptionResponse])
async def list_transcriptions(service: CallServiceDep) -> list[TranscriptionResponse]:
    return [serialize_transcription(item) for item in await service.list_transcriptions()]


@router.post("", response_model=TranscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_transcription(
    payload: TranscriptionCreateRequest,
    service: CallServiceDep,
) -> TranscriptionResponse:
    """Attach a manual transcript; the call is marked complete."""

    transcription = await service.create_transcription(
        call_id=payload.callId,
        text=payload.text,
        confidence=payload.confidence,
    )
    return serialize_transcription(transcription)


@router.get("/{transcription_id}", response_model=TranscriptionResponse)
async def get_transcription(
    transcription_id: UUID,
    service: CallServiceDep,
) -> TranscriptionResponse:
    return serialize_transcription(await service.get_transcription(transcription_id))


@router.put("/{transcription_id}", response_model=TranscriptionResponse)
async def update_transcription(
    transcription_id: UUID,
    payload: TranscriptionUpdateRequest,
    service: CallServiceDep,
) -> TranscriptionResponse:
    transcription = await service.update_transcription(
        transcription_id,
        text=payload.text,
        confidence=payload.confidence,
    )
    return serialize_transcription(transcription)


@router.delete("/{transcription_id}", response_model=MessageResponse)
async def delete_transcription(
    transcription_id: UUID,
    service: CallServiceDep,
) -> MessageResponse:
    """Delete the transcript and reset the owning call to ``transcription_deleted``."""

    await service.delete_transcription(transcription_id)
    return MessageResponse(message="Transcription deleted successfully")


__all__ = ["router", "serialize_transcription"]
