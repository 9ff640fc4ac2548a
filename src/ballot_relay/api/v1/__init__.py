# src/ballot_relay/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import sync_router, votes_router

__all__ = ["sync_router", "votes_router"]
