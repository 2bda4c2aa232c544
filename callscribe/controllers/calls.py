"""Call endpoints: Twilio voice webhooks plus the REST resource."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Form, Response, status

from callscribe.controllers.dependencies import CallServiceDep
from callscribe.models.call import Call
from callscribe.services.call_service import CallStatusProjection
from callscribe.services.telephony import farewell_response, generate_voice_response
from callscribe.views import (
    CallCreateRequest,
    CallResponse,
    CallStatusResponse,
    MessageResponse,
    TranscribeAcceptedResponse,
    TranscriptionDigestResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/calls", tags=["calls"])

_TWIML_MEDIA_TYPE = "text/xml"
_CALL_SID_FORM = Form(..., alias="CallSid")
_FROM_FORM = Form("", alias="From")
_TO_FORM = Form("", alias="To")
_RECORDING_URL_FORM = Form(None, alias="RecordingUrl")
_RECORDING_DURATION_FORM = Form(0, alias="RecordingDuration")


def serialize_call(call: Call) -> CallResponse:
    return CallResponse(
        id=call.id,
        callSid=call.call_sid,
        fromNumber=call.from_number,
        toNumber=call.to_number,
        duration=call.duration or 0,
        recordingUrl=call.recording_ref,
        transcriptionId=call.transcription_id,
        status=call.status,
        metadata=dict(call.metadata_ or {}),
        createdAt=call.created_at,
        updatedAt=call.updated_at,
    )


def serialize_status(projection: CallStatusProjection) -> CallStatusResponse:
    transcription = None
    if projection.transcription is not None:
        transcription = TranscriptionDigestResponse(
            text=projection.transcription.text,
            summary=projection.transcription.summary,
            categories=list(projection.transcription.categories),
            tags=list(projection.transcription.tags),
        )
    return CallStatusResponse(
        callId=projection.call_id,
        status=projection.status,
        fromNumber=projection.from_number,
        toNumber=projection.to_number,
        transcription=transcription,
        error=projection.error,
    )


@router.post("/incoming", response_class=Response)
async def handle_incoming_call() -> Response:
    """Answer the call with a greeting and a voicemail-style recording."""

    twiml = generate_voice_response()
    return Response(content=str(twiml), media_type=_TWIML_MEDIA_TYPE)


@router.post("/recording-status", response_class=Response)
async def handle_recording_status(
    service: CallServiceDep,
    call_sid: str = _CALL_SID_FORM,
    from_number: str = _FROM_FORM,
    to_number: str = _TO_FORM,
    recording_url: str | None = _RECORDING_URL_FORM,
    recording_duration: int = _RECORDING_DURATION_FORM,
) -> Response:
    """Store the finished recording and start transcription."""

    call = await service.record_from_webhook(
        call_sid=call_sid,
        from_number=from_number,
        to_number=to_number,
        recording_url=recording_url,
        duration=recording_duration,
    )
    logger.info("Recording callback for call %s (sid=%s)", call.id, call_sid)
    return Response(content=str(farewell_response()), media_type=_TWIML_MEDIA_TYPE)


@router.get("", response_model=list[CallResponse])
async def list_calls(service: CallServiceDep) -> list[CallResponse]:
    """Return every call, newest first."""

    return [serialize_call(call) for call in await service.list_calls()]


@router.post("", response_model=CallResponse, status_code=status.HTTP_201_CREATED)
async def create_call(payload: CallCreateRequest, service: CallServiceDep) -> CallResponse:
    """Register a call; a recording URL starts the pipeline in the background."""

    call = await service.create_call(
        call_sid=payload.callSid,
        from_number=payload.fromNumber,
        to_number=payload.toNumber,
        recording_ref=payload.recordingUrl,
        duration=payload.duration,
        metadata=payload.metadata,
    )
    return serialize_call(call)


@router.get("/{call_id}", response_model=CallResponse)
async def get_call(call_id: UUID, service: CallServiceDep) -> CallResponse:
    return serialize_call(await service.get_call(call_id))


@router.get("/{call_id}/status", response_model=CallStatusResponse)
async def get_call_status(call_id: UUID, service: CallServiceDep) -> CallStatusResponse:
    return serialize_status(await service.get_call_status(call_id))


@router.post(
    "/{call_id}/transcribe",
    response_model=TranscribeAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def retranscribe_call(call_id: UUID, service: CallServiceDep) -> TranscribeAcceptedResponse:
    """Queue another pipeline run for a failed or reset call."""

    call = await service.retranscribe(call_id)
    return TranscribeAcceptedResponse(message="Transcription scheduled", callId=call.id)


@router.delete("/{call_id}", response_model=MessageResponse)
async def delete_call(call_id: UUID, service: CallServiceDep) -> MessageResponse:
    await service.delete_call(call_id)
    return MessageResponse(message="Call deleted successfully")


__all__ = ["router", "serialize_call", "serialize_status"]
