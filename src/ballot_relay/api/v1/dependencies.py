"""Shared FastAPI dependencies for the v1 API."""

from typing import Annotated

from fastapi import Depends

from ballot_relay.services.runtime import Relay, get_relay


def get_relay_dep() -> Relay:
    """Return the process-wide relay."""
    return get_relay()


RelayDep = Annotated[Relay, Depends(get_relay_dep)]
