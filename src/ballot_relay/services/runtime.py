"""Assembly of the store, engine and scheduler from settings."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from ballot_relay.core.settings import Settings, settings
from ballot_relay.db.session import SessionLocal
from ballot_relay.services.backoff import BackoffPolicy
from ballot_relay.services.connectivity import ConnectivityState
from ballot_relay.services.delivery import DeliveryEngine
from ballot_relay.services.scheduler import Scheduler
from ballot_relay.services.signing import Ed25519Signer, load_signer
from ballot_relay.services.store import RecordStore
from ballot_relay.services.transport import (
    HttpTransport,
    SimulatedTransport,
    Transport,
    load_transport_config,
)

logger = logging.getLogger(__name__)


@dataclass
class Relay:
    """The wired components of one running queue."""

    store: RecordStore
    engine: DeliveryEngine
    scheduler: Scheduler
    signer: Ed25519Signer

    async def close(self) -> None:
        await self.scheduler.stop()
        close = getattr(self.engine.transport, "close", None)
        if close is not None:
            await close()


def build_transport(config: Settings, signer: Ed25519Signer) -> Transport:
    """Select the transport named by ``RELAY_TRANSPORT_MODE``."""
    if config.transport_mode == "http":
        return HttpTransport(load_transport_config(config, public_key_hex=signer.public_key_hex))
    logger.info(
        "Using simulated transport (failure rate %.0f%%)", config.simulated_failure_rate * 100
    )
    return SimulatedTransport(config.simulated_failure_rate, rng=random.Random())


def build_relay(
    config: Settings | None = None,
    *,
    session_factory: sessionmaker | None = None,
    transport: Transport | None = None,
    signer: Ed25519Signer | None = None,
) -> Relay:
    """Wire a relay from settings; collaborators may be injected for tests."""
    cfg = config or settings
    signer = signer or load_signer(cfg.signing_private_key)
    store = RecordStore(session_factory or SessionLocal)
    engine = DeliveryEngine(
        store,
        transport or build_transport(cfg, signer),
        signer,
        connectivity=ConnectivityState(online=cfg.start_online),
        backoff=BackoffPolicy(base_delay=cfg.base_delay_seconds, max_delay=cfg.max_delay_seconds),
        attempt_timeout=cfg.attempt_timeout_seconds,
        max_concurrent_attempts=cfg.max_concurrent_attempts,
    )
    scheduler = Scheduler(engine, interval=cfg.sweep_interval_seconds)
    return Relay(store=store, engine=engine, scheduler=scheduler, signer=signer)


class _RelaySingleton:
    """Process-wide relay used by the API layer."""

    _instance: Relay | None = None

    @classmethod
    def get_instance(cls) -> Relay:
        if cls._instance is None:
            cls._instance = build_relay()
        return cls._instance

    @classmethod
    def set_instance(cls, relay: Relay | None) -> None:
        cls._instance = relay


def get_relay() -> Relay:
    """Return the singleton relay instance."""
    return _RelaySingleton.get_instance()


def set_relay(relay: Relay | None) -> None:
    """Replace (or clear) the singleton relay."""
    _RelaySingleton.set_instance(relay)
