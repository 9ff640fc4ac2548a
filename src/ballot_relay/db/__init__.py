# src/ballot_relay/db/__init__.py
"""Database configuration and utilities."""

from .session import SessionLocal, create_tables, make_engine, make_session_factory

__all__ = ["SessionLocal", "create_tables", "make_engine", "make_session_factory"]
