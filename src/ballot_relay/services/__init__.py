"""Service layer for the Ballot Relay queue."""

from .delivery import DeliveryEngine, SweepReport
from .scheduler import Scheduler
from .store import RecordStore, StorageUnavailable, VoteRecord, VoteStatus
from .transport import DeliveryOutcome, Transport

__all__ = [
    "DeliveryEngine",
    "DeliveryOutcome",
    "RecordStore",
    "Scheduler",
    "StorageUnavailable",
    "SweepReport",
    "Transport",
    "VoteRecord",
    "VoteStatus",
]
