# src/ballot_relay/api/v1/endpoints/sync.py
"""Connectivity toggle and delivery status endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, status

from ballot_relay.api.v1.dependencies import RelayDep
from ballot_relay.schemas.sync import ConnectivityUpdate, SweepReportResponse, SyncStatusResponse
from ballot_relay.services.store import StorageUnavailable
from ballot_relay.services.transport import HttpTransport

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(relay: RelayDep) -> SyncStatusResponse:
    """Return the online flag, queue depth and outcome of the last sweep."""
    try:
        pending = await asyncio.to_thread(relay.store.count)
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vote queue is unavailable",
        ) from exc

    engine = relay.engine
    transport = engine.transport
    transport_info = None
    if isinstance(transport, HttpTransport):
        transport_info = {
            "circuit_state": transport.circuit_state.value,
            "metrics": transport.metrics.as_dict(),
        }

    last = engine.last_report
    return SyncStatusResponse(
        online=engine.connectivity.online,
        pending=pending,
        sweeping=engine.sweeping,
        scheduler_running=relay.scheduler.running,
        last_sweep=SweepReportResponse(**last.as_dict()) if last else None,
        transport=transport_info,
    )


@router.put("/connectivity", response_model=SyncStatusResponse)
async def set_connectivity(update: ConnectivityUpdate, relay: RelayDep) -> SyncStatusResponse:
    """Manually switch between online and offline mode."""
    relay.scheduler.set_online(update.online)
    return await get_sync_status(relay)


@router.post("/sweep", response_model=SweepReportResponse)
async def run_sweep(relay: RelayDep) -> SweepReportResponse:
    """Run a delivery sweep now and return what it did."""
    try:
        report = await relay.engine.sweep()
    except StorageUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Vote queue is unavailable",
        ) from exc
    return SweepReportResponse(**report.as_dict())
