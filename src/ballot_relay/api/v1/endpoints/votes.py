# src/ballot_relay/api/v1/endpoints/votes.py
"""Vote casting and queue display endpoints."""

import asyncio

from fastapi import APIRouter, HTTPException, status

from ballot_relay.api.v1.dependencies import RelayDep
from ballot_relay.schemas.vote import VoteCast, VoteResponse
from ballot_relay.services.store import StorageUnavailable

router = APIRouter(prefix="/votes", tags=["votes"])


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=VoteResponse)
async def cast_vote(vote_data: VoteCast, relay: RelayDep) -> VoteResponse:
    """Queue a vote for delivery.

    The response only confirms local persistence; delivery happens in the
    background and is never reported as an error here.
    """
    try:
        record = await relay.engine.cast(vote_data.choice)
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vote could not be stored, try again",
        ) from exc
    return VoteResponse.from_record(record)


@router.get("/", response_model=list[VoteResponse])
async def list_votes(relay: RelayDep) -> list[VoteResponse]:
    """List every undelivered vote with its delivery status."""
    try:
        records = await asyncio.to_thread(lambda: list(relay.store.get_all()))
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vote queue is unavailable",
        ) from exc
    return [VoteResponse.from_record(record) for record in records]


@router.get("/{vote_id}", response_model=VoteResponse)
async def get_vote(vote_id: str, relay: RelayDep) -> VoteResponse:
    """Return one undelivered vote; 404 means it was delivered or never existed."""
    try:
        record = await asyncio.to_thread(relay.store.get, vote_id)
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vote queue is unavailable",
        ) from exc
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vote not queued")
    return VoteResponse.from_record(record)
