# src/ballot_relay/models/__init__.py
"""SQLAlchemy models for the Ballot Relay queue."""

from .queued_vote import QueuedVote

__all__ = ["QueuedVote"]
