"""SQLAlchemy models for the MVC architecture."""

from .base import Base
from .call import Call, CallStatus  # noqa: F401
from .transcription import Transcription  # noqa: F401

__all__ = [
    "Base",
    "Call",
    "CallStatus",
    "Transcription",
]
