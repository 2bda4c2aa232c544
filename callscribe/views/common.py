"""Common response schemas."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Envelope used by every error response."""

    message: str
    error: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class PingResponse(BaseModel):
    message: str
    database: str
