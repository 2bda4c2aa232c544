"""Persistence helpers for calls and their transcriptions.

Every repository opens its own short-lived session from the injected factory,
so background pipeline runs never share a session with request handlers.
Writes are last-write-wins per field; the only guarded write is
:meth:`CallRepository.claim_for_processing`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping
from uuid import UUID

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callscribe.models.call import STARTABLE_STATUSES, Call, CallStatus
from callscribe.models.transcription import Transcription

logger = logging.getLogger(__name__)

PIPELINE_ERROR_KEY = "pipeline_error"


class PersistenceError(RuntimeError):
    """Raised when the database is unavailable or rejects a write."""


class DuplicateCallError(ValueError):
    """Raised when a call with the same provider identifier already exists."""


class _Repository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(f"Database operation failed: {exc}") from exc


class CallRepository(_Repository):
    """Read/write access to :class:`Call` rows."""

    async def create(
        self,
        *,
        call_sid: str,
        from_number: str,
        to_number: str,
        recording_ref: str | None = None,
        duration: int = 0,
        metadata: Mapping[str, Any] | None = None,
    ) -> Call:
        call = Call(
            call_sid=call_sid,
            from_number=from_number,
            to_number=to_number,
            recording_ref=recording_ref,
            duration=duration or 0,
            status=CallStatus.PENDING,
            metadata_=dict(metadata or {}),
        )
        async with self._session() as session:
            session.add(call)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateCallError(
                    f"Call with sid '{call_sid}' already exists"
                ) from exc
            await session.refresh(call)
        return call

    async def get(self, call_id: UUID) -> Call | None:
        async with self._session() as session:
            return await session.get(Call, call_id)

    async def get_by_sid(self, call_sid: str) -> Call | None:
        async with self._session() as session:
            result = await session.execute(select(Call).where(Call.call_sid == call_sid))
            return result.scalar_one_or_none()

    async def get_with_transcription(
        self, call_id: UUID
    ) -> tuple[Call, Transcription | None] | None:
        """Return the call and its referenced transcription in one round trip."""

        async with self._session() as session:
            result = await session.execute(
                select(Call, Transcription)
                .outerjoin(Transcription, Transcription.id == Call.transcription_id)
                .where(Call.id == call_id)
            )
            row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_with_transcriptions(self) -> list[tuple[Call, Transcription | None]]:
        async with self._session() as session:
            result = await session.execute(
                select(Call, Transcription)
                .outerjoin(Transcription, Transcription.id == Call.transcription_id)
                .order_by(Call.created_at.desc())
            )
            return [(row[0], row[1]) for row in result.all()]

    async def list_recent(self) -> list[Call]:
        async with self._session() as session:
            result = await session.execute(select(Call).order_by(Call.created_at.desc()))
            return list(result.scalars().all())

    async def list_by_status(self, statuses: Iterable[CallStatus]) -> list[Call]:
        async with self._session() as session:
            result = await session.execute(
                select(Call)
                .where(Call.status.in_(list(statuses)))
                .order_by(Call.created_at)
            )
            return list(result.scalars().all())

    async def update_fields(self, call_id: UUID, **fields: Any) -> Call | None:
        async with self._session() as session:
            call = await session.get(Call, call_id)
            if call is None:
                return None
            for name, value in fields.items():
                setattr(call, name, value)
            await session.commit()
            await session.refresh(call)
        return call

    async def claim_for_processing(self, call_id: UUID) -> bool:
        """Move the call to ``transcription_in_progress`` if it may start.

        Returns False when the call is missing, already running or finished.
        """

        async with self._session() as session:
            result = await session.execute(
                update(Call)
                .where(Call.id == call_id, Call.status.in_(STARTABLE_STATUSES))
                .values(status=CallStatus.IN_PROGRESS)
            )
            await session.commit()
        return result.rowcount == 1

    async def mark_complete(self, call_id: UUID, transcription_id: UUID) -> Call | None:
        async with self._session() as session:
            call = await session.get(Call, call_id)
            if call is None:
                return None
            call.transcription_id = transcription_id
            call.status = CallStatus.COMPLETE
            metadata = dict(call.metadata_ or {})
            metadata.pop(PIPELINE_ERROR_KEY, None)
            call.metadata_ = metadata
            await session.commit()
            await session.refresh(call)
        return call

    async def mark_failed(self, call_id: UUID, error: str) -> Call | None:
        """Fail the call and drop its transcription reference."""

        async with self._session() as session:
            call = await session.get(Call, call_id)
            if call is None:
                return None
            call.status = CallStatus.FAILED
            call.transcription_id = None
            call.metadata_ = {**(call.metadata_ or {}), PIPELINE_ERROR_KEY: error}
            await session.commit()
            await session.refresh(call)
        return call

    async def delete(self, call_id: UUID) -> bool:
        """Delete the call together with every transcription that points at it."""

        async with self._session() as session:
            call = await session.get(Call, call_id)
            if call is None:
                return False
            await session.execute(
                delete(Transcription).where(Transcription.call_id == call_id)
            )
            await session.delete(call)
            await session.commit()
        return True

    async def ping(self) -> bool:
        try:
            async with self._session() as session:
                await session.execute(text("SELECT 1"))
        except PersistenceError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True


class TranscriptionRepository(_Repository):
    """Read/write access to :class:`Transcription` rows."""

    async def create(
        self,
        *,
        call_id: UUID,
        text: str,
        confidence: float = 0.0,
    ) -> Transcription | None:
        """Insert a transcription; returns None when the call does not exist."""

        async with self._session() as session:
            if await session.get(Call, call_id) is None:
                return None
            transcription = Transcription(
                call_id=call_id,
                text=text,
                confidence=confidence,
                categories=[],
                tags=[],
            )
            session.add(transcription)
            await session.commit()
            await session.refresh(transcription)
        return transcription

    async def get(self, transcription_id: UUID) -> Transcription | None:
        async with self._session() as session:
            return await session.get(Transcription, transcription_id)

    async def list_recent(self) -> list[Transcription]:
        async with self._session() as session:
            result = await session.execute(
                select(Transcription).order_by(Transcription.created_at.desc())
            )
            return list(result.scalars().all())

    async def update_fields(
        self, transcription_id: UUID, **fields: Any
    ) -> Transcription | None:
        async with self._session() as session:
            transcription = await session.get(Transcription, transcription_id)
            if transcription is None:
                return None
            for name, value in fields.items():
                setattr(transcription, name, value)
            await session.commit()
            await session.refresh(transcription)
        return transcription

    async def delete(self, transcription_id: UUID) -> Transcription | None:
        """Delete and return the row, resetting any call that referenced it."""

        async with self._session() as session:
            transcription = await session.get(Transcription, transcription_id)
            if transcription is None:
                return None
            await session.execute(
                update(Call)
                .where(Call.transcription_id == transcription_id)
                .values(transcription_id=None, status=CallStatus.DELETED)
            )
            await session.delete(transcription)
            await session.commit()
        return transcription

    async def discard(self, transcription_id: UUID) -> None:
        """Remove a transcription without touching the owning call."""

        async with self._session() as session:
            await session.execute(
                delete(Transcription).where(Transcription.id == transcription_id)
            )
            await session.commit()


__all__ = [
    "CallRepository",
    "DuplicateCallError",
    "PIPELINE_ERROR_KEY",
    "PersistenceError",
    "TranscriptionRepository",
]
