"""Vote-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from ballot_relay.services.store import VoteRecord, VoteStatus


class VoteCast(BaseModel):
    """Schema for casting a new vote."""

    choice: str = Field(..., min_length=1, max_length=256, description="Ballot option voted for")


class VoteResponse(BaseModel):
    """Display view of a queued vote."""

    id: str
    status: VoteStatus
    idempotency_key: str
    retry_count: int
    choice: str
    created_at: datetime
    next_attempt_at: datetime | None = None

    @classmethod
    def from_record(cls, record: VoteRecord) -> "VoteResponse":
        return cls(
            id=record.id,
            status=record.status,
            idempotency_key=record.idempotency_key,
            retry_count=record.retry_count,
            choice=record.choice,
            created_at=record.created_at,
            next_attempt_at=record.next_attempt_at,
        )
