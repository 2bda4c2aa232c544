"""Pydantic schemas used as views in the MVC architecture."""

from .calls import (
    CallCreateRequest,
    CallListItem,
    CallResponse,
    CallStatusResponse,
    SimulatedCallResponse,
    TranscribeAcceptedResponse,
    TranscriptionDigestResponse,
)
from .common import ErrorResponse, MessageResponse, PingResponse
from .transcriptions import (
    TranscriptionCreateRequest,
    TranscriptionResponse,
    TranscriptionUpdateRequest,
)

__all__ = [
    "CallCreateRequest",
    "CallListItem",
    "CallResponse",
    "CallStatusResponse",
    "SimulatedCallResponse",
    "TranscribeAcceptedResponse",
    "TranscriptionDigestResponse",
    "TranscriptionCreateRequest",
    "TranscriptionResponse",
    "TranscriptionUpdateRequest",
    "ErrorResponse",
    "MessageResponse",
    "PingResponse",
]
