"""
Pydantic schemas for API request/response models.
"""

from .sync import ConnectivityUpdate, SweepReportResponse, SyncStatusResponse
from .vote import VoteCast, VoteResponse

__all__ = [
    "ConnectivityUpdate",
    "SweepReportResponse",
    "SyncStatusResponse",
    "VoteCast",
    "VoteResponse",
]
