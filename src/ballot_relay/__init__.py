"""Durable client-side vote queue with exactly-once delivery to a remote acceptor."""

__version__ = "0.1.0"
