"""Transports that hand queued votes to the remote acceptor.

This module provides the delivery side of the queue:

- The ``Transport`` protocol the delivery engine depends on
- ``HttpTransport``: httpx client with bearer auth, idempotency headers,
  a circuit breaker and request metrics
- ``SimulatedTransport``: randomized outcomes for demos and manual testing

Every transport reduces a delivery attempt to a binary ``DeliveryOutcome``.
"""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx
from jose import jwt

from ballot_relay.core.settings import Settings, settings
from ballot_relay.services.store import VoteRecord

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_CONFLICT = 409
HTTP_INTERNAL_SERVER_ERROR = 500


class TransportError(RuntimeError):
    """Raised internally when a request to the acceptor cannot be completed."""


class DeliveryOutcome(str, Enum):
    """Result of a single delivery attempt."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"


class Transport(Protocol):
    """Delivers one full record to the remote acceptor."""

    async def attempt(self, record: VoteRecord) -> DeliveryOutcome: ...


class CircuitState(Enum):
    """Circuit breaker states for fault tolerance."""

    CLOSED = "closed"  # Normal operation - requests allowed
    OPEN = "open"  # Acceptor considered down - requests short-circuited
    HALF_OPEN = "half_open"  # Probing whether the acceptor is back


@dataclass
class CircuitBreaker:
    """Circuit breaker guarding the acceptor endpoint."""

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Check if circuit is open, moving to half-open once the timeout elapses."""
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    @property
    def state(self) -> CircuitState:
        return self._state


@dataclass
class TransportMetrics:
    """Counters for delivery requests."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        self.request_count += 1
        self.total_response_time += response_time
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_average_response_time(self) -> float:
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0

    def get_success_rate(self) -> float:
        """Get success rate as a percentage."""
        return (self.success_count / self.request_count * 100) if self.request_count > 0 else 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "requests": self.request_count,
            "successes": self.success_count,
            "errors": self.error_count,
            "success_rate": self.get_success_rate(),
            "average_response_time": self.get_average_response_time(),
            "errors_by_type": dict(self.error_counts_by_type),
        }


@dataclass(frozen=True)
class TransportConfig:
    """Immutable configuration for HTTP delivery."""

    base_url: str
    path: str
    instance_id: str
    shared_secret: str | None
    audience: str
    token_ttl_seconds: int
    timeout_seconds: float
    public_key_hex: str | None = None


def load_transport_config(
    config: Settings | None = None, *, public_key_hex: str | None = None
) -> TransportConfig:
    """Build the HTTP transport configuration from settings."""
    cfg = config or settings
    if not cfg.acceptor_base_url:
        raise ValueError("RELAY_ACCEPTOR_BASE_URL is required for the http transport")
    return TransportConfig(
        base_url=cfg.acceptor_base_url,
        path=cfg.acceptor_path,
        instance_id=cfg.instance_id,
        shared_secret=cfg.shared_secret,
        audience=cfg.audience,
        token_ttl_seconds=cfg.token_ttl_seconds,
        timeout_seconds=float(cfg.http_timeout_seconds),
        public_key_hex=public_key_hex,
    )


def record_payload(record: VoteRecord, *, public_key_hex: str | None = None) -> dict[str, Any]:
    """Serialize the full record as sent to the acceptor."""
    payload: dict[str, Any] = {
        "id": record.id,
        "idempotency_key": record.idempotency_key,
        "integrity_tag": record.integrity_tag.hex(),
        "choice": record.choice,
        "created_at": record.created_at.isoformat(),
        "retry_count": record.retry_count,
    }
    if public_key_hex:
        payload["public_key"] = public_key_hex
    return payload


class HttpTransport:
    """HTTP client wrapper that POSTs votes to the acceptor."""

    def __init__(
        self,
        config: TransportConfig,
        *,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self.config = config
        self._client = client
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self._metrics = TransportMetrics()

    @property
    def metrics(self) -> TransportMetrics:
        return self._metrics

    @property
    def circuit_state(self) -> CircuitState:
        return self._circuit_breaker.state

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    def _build_headers(self, *, idempotency_key: str) -> dict[str, str]:
        headers = {
            "X-Relay-Instance-Id": self.config.instance_id,
            "Idempotency-Key": idempotency_key,
        }

        if self.config.shared_secret:
            now = int(time.time())
            claims = {
                "iss": self.config.instance_id,
                "aud": self.config.audience,
                "iat": now,
                "exp": now + max(1, self.config.token_ttl_seconds),
                "jti": secrets.token_hex(8),
            }
            token = jwt.encode(claims, self.config.shared_secret, algorithm="HS256")
            headers["Authorization"] = f"Bearer {token}"

        return headers

    async def _post(self, record: VoteRecord) -> httpx.Response:
        if self._circuit_breaker.is_open():
            raise TransportError("acceptor circuit breaker is open")

        client = await self._ensure_client()
        start_time = time.monotonic()
        success = False
        error_type = None

        try:
            response = await client.post(
                self.config.path,
                json=record_payload(record, public_key_hex=self.config.public_key_hex),
                headers=self._build_headers(idempotency_key=record.idempotency_key),
            )
            if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
                self._circuit_breaker.record_failure()
                error_type = f"http_{response.status_code}"
                raise TransportError(f"acceptor responded with {response.status_code}")
            self._circuit_breaker.record_success()
            success = True
            return response
        except httpx.HTTPError as exc:
            self._circuit_breaker.record_failure()
            error_type = "network_error"
            raise TransportError(f"acceptor request failed: {exc}") from exc
        finally:
            self._metrics.record_request(time.monotonic() - start_time, success, error_type)

    async def attempt(self, record: VoteRecord) -> DeliveryOutcome:
        """Send one vote; 2xx or 409 (already accepted) counts as delivered."""
        try:
            response = await self._post(record)
        except TransportError as exc:
            logger.warning("Delivery of vote %s failed: %s", record.id, exc)
            return DeliveryOutcome.TRANSIENT_FAILURE

        if response.is_success or response.status_code == HTTP_CONFLICT:
            return DeliveryOutcome.SUCCESS

        logger.warning(
            "Acceptor rejected vote %s with status %d", record.id, response.status_code
        )
        return DeliveryOutcome.TRANSIENT_FAILURE

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class SimulatedTransport:
    """Transport that fails at random, standing in for a flaky network."""

    def __init__(
        self,
        failure_rate: float = 0.3,
        *,
        rng: random.Random | None = None,
        latency_seconds: float = 0.0,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self._latency = latency_seconds

    async def attempt(self, record: VoteRecord) -> DeliveryOutcome:
        if self._latency:
            await asyncio.sleep(self._latency)
        if self._rng.random() < self.failure_rate:
            logger.info("Simulated transient failure for vote %s", record.id)
            return DeliveryOutcome.TRANSIENT_FAILURE
        return DeliveryOutcome.SUCCESS

    async def close(self) -> None:
        return None
