# src/ballot_relay/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .sync import router as sync_router
from .votes import router as votes_router

__all__ = ["sync_router", "votes_router"]
