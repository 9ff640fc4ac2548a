"""Durable record store for queued votes.

The store is a thin, synchronous wrapper around SQLAlchemy sessions. Every
mutating call opens its own session and commits before returning, so a crash
right after a successful ``put``/``delete`` neither loses nor resurrects the
change. Reads hand back immutable ``VoteRecord`` values detached from any
session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import overload

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ballot_relay.db.time import as_utc
from ballot_relay.models import QueuedVote

logger = logging.getLogger(__name__)


class StorageUnavailable(RuntimeError):
    """Raised when the underlying database cannot complete a read or durable write.

    The caller must not assume a failed write was persisted.
    """


class VoteStatus(str, Enum):
    """Delivery states retained in storage."""

    QUEUED = "queued"  # eligible for an immediate attempt
    SENDING = "sending"  # claimed by an in-flight attempt
    FAILED = "failed"  # eligible again once next_attempt_at has passed


@dataclass(frozen=True)
class VoteRecord:
    """Immutable snapshot of one queued vote."""

    id: str
    idempotency_key: str
    integrity_tag: bytes
    status: VoteStatus
    retry_count: int
    choice: str
    created_at: datetime
    last_failure_at: datetime | None = None
    next_attempt_at: datetime | None = None

    @classmethod
    def from_row(cls, row: QueuedVote) -> VoteRecord:
        return cls(
            id=row.id,
            idempotency_key=row.idempotency_key,
            integrity_tag=bytes(row.integrity_tag),
            status=VoteStatus(row.status),
            retry_count=row.retry_count,
            choice=row.choice,
            created_at=as_utc(row.created_at),
            last_failure_at=as_utc(row.last_failure_at),
            next_attempt_at=as_utc(row.next_attempt_at),
        )

    def to_row(self) -> QueuedVote:
        return QueuedVote(
            id=self.id,
            idempotency_key=self.idempotency_key,
            integrity_tag=self.integrity_tag,
            status=self.status.value,
            retry_count=self.retry_count,
            choice=self.choice,
            created_at=self.created_at,
            last_failure_at=self.last_failure_at,
            next_attempt_at=self.next_attempt_at,
        )


class RecordSnapshot(Sequence[VoteRecord]):
    """Lazy, restartable snapshot of a query result.

    The query runs on first access; every later iteration replays the same
    materialized rows, so concurrent store mutations never change what an
    in-progress sweep sees.
    """

    def __init__(self, loader: Callable[[], list[VoteRecord]]) -> None:
        self._loader = loader
        self._records: tuple[VoteRecord, ...] | None = None

    def _materialize(self) -> tuple[VoteRecord, ...]:
        if self._records is None:
            self._records = tuple(self._loader())
        return self._records

    @overload
    def __getitem__(self, index: int) -> VoteRecord: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[VoteRecord]: ...

    def __getitem__(self, index: int | slice) -> VoteRecord | Sequence[VoteRecord]:
        return self._materialize()[index]

    def __len__(self) -> int:
        return len(self._materialize())

    def __iter__(self) -> Iterator[VoteRecord]:
        return iter(self._materialize())


class RecordStore:
    """Keyed persistence for queue records, queryable by status.

    ``sweep_lock`` is held by a delivery engine for the whole of a sweep, so at
    most one sweep runs against a store however many engines share it.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self.sweep_lock = asyncio.Lock()

    def put(self, record: VoteRecord) -> None:
        """Insert or fully replace the record keyed by ``record.id``."""
        with self._session_factory() as db:
            try:
                db.merge(record.to_row())
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning("Failed to persist vote %s: %s", record.id, exc)
                raise StorageUnavailable(f"could not persist vote {record.id}") from exc

    def delete(self, record_id: str) -> None:
        """Remove a record; deleting an unknown id is a no-op."""
        with self._session_factory() as db:
            try:
                row = db.get(QueuedVote, record_id)
                if row is not None:
                    db.delete(row)
                    db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning("Failed to delete vote %s: %s", record_id, exc)
                raise StorageUnavailable(f"could not delete vote {record_id}") from exc

    def get(self, record_id: str) -> VoteRecord | None:
        """Return a single record, or None when it is not stored."""
        with self._session_factory() as db:
            try:
                row = db.get(QueuedVote, record_id)
            except SQLAlchemyError as exc:
                raise StorageUnavailable(f"could not read vote {record_id}") from exc
            return VoteRecord.from_row(row) if row is not None else None

    def list_by_status(self, status: VoteStatus) -> RecordSnapshot:
        """Return records with ``status`` ordered by id ascending."""
        return RecordSnapshot(
            lambda: self._load(
                select(QueuedVote).where(QueuedVote.status == status.value).order_by(QueuedVote.id)
            )
        )

    def get_all(self) -> RecordSnapshot:
        """Return every stored record ordered by id; intended for display."""
        return RecordSnapshot(lambda: self._load(select(QueuedVote).order_by(QueuedVote.id)))

    def count(self) -> int:
        """Return the number of undelivered records."""
        with self._session_factory() as db:
            try:
                return int(db.scalar(select(func.count()).select_from(QueuedVote)) or 0)
            except SQLAlchemyError as exc:
                raise StorageUnavailable("could not count queued votes") from exc

    def _load(self, statement: Select) -> list[VoteRecord]:
        with self._session_factory() as db:
            try:
                rows = db.scalars(statement).all()
            except SQLAlchemyError as exc:
                logger.warning("Failed to read queued votes: %s", exc)
                raise StorageUnavailable("could not read queued votes") from exc
            return [VoteRecord.from_row(row) for row in rows]
