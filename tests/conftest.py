# tests/conftest.py
from __future__ import annotations

import os
import time
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RELAY_TRANSPORT_MODE", "simulated")

from ballot_relay.core.settings import Settings
from ballot_relay.db.session import (
    create_tables,
    drop_tables,
    make_engine,
    make_session_factory,
)
from ballot_relay.main import app as fastapi_app
from ballot_relay.services.backoff import BackoffPolicy
from ballot_relay.services.connectivity import ConnectivityState
from ballot_relay.services.delivery import DeliveryEngine
from ballot_relay.services.runtime import Relay, build_relay, set_relay
from ballot_relay.services.signing import Ed25519Signer
from ballot_relay.services.store import RecordStore, VoteRecord
from ballot_relay.services.transport import DeliveryOutcome

BASE_DELAY_SECONDS = 10.0


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class StubAcceptor:
    """Deterministic transport that also plays the acceptor's dedup role.

    Outcomes are consumed in order; once exhausted ``default`` is returned.
    ``accepted`` maps each idempotency key to how many times it was counted,
    which is at most once however often it was delivered.
    """

    def __init__(
        self,
        outcomes: list[DeliveryOutcome] | None = None,
        default: DeliveryOutcome = DeliveryOutcome.SUCCESS,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls: list[VoteRecord] = []
        self.accepted: dict[str, int] = {}
        self.received: dict[str, int] = {}

    async def attempt(self, record: VoteRecord) -> DeliveryOutcome:
        self.calls.append(record)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if outcome == DeliveryOutcome.SUCCESS:
            self.received[record.idempotency_key] = self.received.get(record.idempotency_key, 0) + 1
            self.accepted.setdefault(record.idempotency_key, 1)
        return outcome


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "queue.db"


@pytest.fixture()
def db_engine(db_path: Path) -> Iterator[Engine]:
    engine = make_engine(f"sqlite:///{db_path}")
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(db_engine: Engine) -> sessionmaker:
    return make_session_factory(db_engine)


@pytest.fixture()
def store(session_factory: sessionmaker) -> RecordStore:
    return RecordStore(session_factory)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def signer() -> Ed25519Signer:
    return Ed25519Signer.generate()


@pytest.fixture()
def acceptor() -> StubAcceptor:
    return StubAcceptor()


@pytest.fixture()
def backoff() -> BackoffPolicy:
    policy = BackoffPolicy(base_delay=BASE_DELAY_SECONDS)
    # Pin jitter to the upper bound so "after backoff" is deterministic in tests.
    policy.jitter = lambda: 1.5  # type: ignore[method-assign]
    return policy


@pytest.fixture()
def make_engine_for(
    store: RecordStore,
    signer: Ed25519Signer,
    clock: FakeClock,
    backoff: BackoffPolicy,
) -> Callable[..., DeliveryEngine]:
    def _make(transport, **kwargs) -> DeliveryEngine:
        kwargs.setdefault("connectivity", ConnectivityState(online=True))
        kwargs.setdefault("backoff", backoff)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("attempt_timeout", 1.0)
        return DeliveryEngine(kwargs.pop("store", store), transport, signer, **kwargs)

    return _make


@pytest.fixture()
def engine(make_engine_for, acceptor: StubAcceptor) -> DeliveryEngine:
    return make_engine_for(acceptor)


@pytest.fixture()
def acceptor_factory() -> type[StubAcceptor]:
    return StubAcceptor


@pytest.fixture()
def relay(
    session_factory: sessionmaker, acceptor: StubAcceptor, signer: Ed25519Signer
) -> Iterator[Relay]:
    config = Settings(RELAY_SWEEP_INTERVAL_SECONDS=3600, RELAY_START_ONLINE=True)
    relay = build_relay(config, session_factory=session_factory, transport=acceptor, signer=signer)
    set_relay(relay)
    try:
        yield relay
    finally:
        set_relay(None)


@pytest.fixture()
def client(relay: Relay) -> Iterator[TestClient]:
    with TestClient(fastapi_app, base_url="http://test") as test_client:
        # The scheduler sweeps once on startup; let it finish so it cannot race a test.
        deadline = time.monotonic() + 5.0
        while relay.engine.last_report is None and time.monotonic() < deadline:
            time.sleep(0.01)
        yield test_client
