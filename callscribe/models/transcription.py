"""SQLAlchemy model for call transcripts and their derived analysis."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Text, Uuid, func

from callscribe.models.base import Base

# Whisper returns no confidence score. Stored values are this constant, not a
# measurement, and consumers must not rank transcripts by it.
PLACEHOLDER_CONFIDENCE = 0.9


class Transcription(Base):
    __tablename__ = "transcriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    call_id = Column(
        Uuid,
        ForeignKey("calls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False, default=0.0)
    summary = Column(Text, nullable=True)
    categories = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


__all__ = ["Transcription", "PLACEHOLDER_CONFIDENCE"]
