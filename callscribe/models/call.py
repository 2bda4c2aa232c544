"""SQLAlchemy model for inbound calls tracked by the pipeline."""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String, Uuid, func
from sqlalchemy import Enum as SqlEnum

from callscribe.models.base import Base


class CallStatus(str, Enum):
    """Finite set of pipeline states a call moves through."""

    PENDING = "pending_transcription"
    IN_PROGRESS = "transcription_in_progress"
    COMPLETE = "transcription_complete"
    FAILED = "transcription_failed"
    DELETED = "transcription_deleted"

# States from which a new pipeline run may claim the call.
STARTABLE_STATUSES = (CallStatus.PENDING, CallStatus.FAILED, CallStatus.DELETED)


class Call(Base):
    __tablename__ = "calls"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    call_sid = Column(String(64), unique=True, nullable=False, index=True)
    from_number = Column(String(32), nullable=False)
    to_number = Column(String(32), nullable=False)
    duration = Column(Integer, nullable=False, default=0)
    recording_ref = Column(String(2048), nullable=True)
    # Plain reference; the owning side of the link is Transcription.call_id.
    transcription_id = Column(Uuid, nullable=True, index=True)
    status = Column(
        SqlEnum(
            CallStatus,
            name="call_status",
            native_enum=False,
            length=32,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=CallStatus.PENDING,
        index=True,
    )
    # Open mapping of string -> JSON primitive. Producers should stick to a
    # stable key set; the pipeline itself only writes ``pipeline_error``.
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
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

    def __repr__(self) -> str:
        return f"<Call id={self.id} sid={self.call_sid} status={self.status}>"


__all__ = ["Call", "CallStatus", "STARTABLE_STATUSES"]
