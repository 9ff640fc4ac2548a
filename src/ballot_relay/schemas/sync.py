"""Schemas for the sync control surface."""

from typing import Any

from pydantic import BaseModel


class ConnectivityUpdate(BaseModel):
    """Manual online/offline toggle."""

    online: bool


class SweepReportResponse(BaseModel):
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    deferred: int = 0
    store_errors: int = 0
    recovered: int = 0
    skipped: bool = False


class SyncStatusResponse(BaseModel):
    online: bool
    pending: int
    sweeping: bool
    scheduler_running: bool
    last_sweep: SweepReportResponse | None = None
    transport: dict[str, Any] | None = None
