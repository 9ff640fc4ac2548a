# src/ballot_relay/models/queued_vote.py
"""SQLAlchemy model for votes awaiting delivery to the remote acceptor."""

from datetime import datetime

from sqlalchemy import VARCHAR, DateTime, Index, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ballot_relay.db.session import Base


class QueuedVote(Base):
    """A locally cast vote that has not yet been confirmed by the acceptor.

    Rows are deleted on confirmed delivery; there is no stored "confirmed" state.
    """

    __tablename__ = "queued_vote"
    __table_args__ = (Index("ix_queued_vote_status", "status"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    idempotency_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    integrity_tag: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    status: Mapped[str] = mapped_column(
        VARCHAR(20), nullable=False, default="queued"
    )  # 'queued', 'sending', 'failed'
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    choice: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_failure_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Computed once per failure so the jittered backoff is stable across sweeps.
    next_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
