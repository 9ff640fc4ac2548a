"""Online/offline mode shared by the scheduler and the delivery engine."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ConnectivityState:
    """Mutable online flag.

    Offline is a mode rather than an error: while it is set the delivery engine
    leaves every eligible record untouched instead of calling the transport.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> bool:
        """Update the flag; returns True when this call restored connectivity."""
        restored = online and not self._online
        if online != self._online:
            logger.info("Connectivity changed: %s", "online" if online else "offline")
        self._online = online
        return restored
