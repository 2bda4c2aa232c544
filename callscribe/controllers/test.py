"""Diagnostic endpoints and the upload-driven call simulator."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile, status

from callscribe.config.settings import settings
from callscribe.controllers.calls import serialize_status
from callscribe.controllers.dependencies import CallServiceDep
from callscribe.views import (
    CallListItem,
    CallStatusResponse,
    PingResponse,
    SimulatedCallResponse,
)

router = APIRouter(prefix="/api/test", tags=["test"])

_AUDIO_FILE_UPLOAD = File(..., alias="audioFile")
_FROM_FORM = Form(None, alias="from")


@router.get("/ping", response_model=PingResponse)
async def ping(service: CallServiceDep) -> PingResponse:
    """Report liveness together with database reachability."""

    connected = await service.store_available()
    return PingResponse(
        message=f"{settings.app_name} is running",
        database="connected" if connected else "disconnected",
    )


@router.post(
    "/simulate-call",
    response_model=SimulatedCallResponse,
    status_code=status.HTTP_201_CREATED,
)
async def simulate_call(
    service: CallServiceDep,
    audio_file: UploadFile = _AUDIO_FILE_UPLOAD,
    from_number: Optional[str] = _FROM_FORM,
) -> SimulatedCallResponse:
    """Treat an uploaded audio file as the recording of an inbound call."""

    call = await service.simulate_call(audio_file, from_number)
    return SimulatedCallResponse(
        message="Call simulation started",
        callId=call.id,
        status="processing",
    )


@router.get("/calls", response_model=list[CallListItem])
async def list_test_calls(service: CallServiceDep) -> list[CallListItem]:
    items = []
    for projection in await service.list_call_statuses():
        transcription = None
        if projection.transcription is not None:
            transcription = {
                "text": projection.transcription.text,
                "summary": projection.transcription.summary,
            }
        items.append(
            CallListItem(
                callId=projection.call_id,
                status=projection.status,
                fromNumber=projection.from_number,
                toNumber=projection.to_number,
                createdAt=projection.created_at,
                transcription=transcription,
            )
        )
    return items


@router.get("/calls/{call_id}/status", response_model=CallStatusResponse)
async def get_test_call_status(call_id: UUID, service: CallServiceDep) -> CallStatusResponse:
    return serialize_status(await service.get_call_status(call_id))


__all__ = ["router"]
