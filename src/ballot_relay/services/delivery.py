"""Delivery engine: the per-record state machine and retry policy.

This module provides the DeliveryEngine class, the only component that writes
``status`` and ``retry_count``. A record moves

    queued/failed --claim--> sending --success--> (deleted)
                                     --failure--> failed (retry_count + 1)

and is never deleted for any reason other than a confirmed delivery. The
acceptor deduplicates on ``idempotency_key``, so resending a record whose
previous outcome was lost (crash, timeout, failed write-back) is always safe.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, replace
from datetime import datetime

from ballot_relay.db.time import utcnow
from ballot_relay.services.backoff import BackoffPolicy
from ballot_relay.services.connectivity import ConnectivityState
from ballot_relay.services.signing import Signer, integrity_message
from ballot_relay.services.store import RecordStore, StorageUnavailable, VoteRecord, VoteStatus
from ballot_relay.services.transport import DeliveryOutcome, Transport

# Configure logger for this module
logger = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 15.0


@dataclass
class SweepReport:
    """What a single sweep did."""

    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    deferred: int = 0
    store_errors: int = 0
    recovered: int = 0
    skipped: bool = False

    def as_dict(self) -> dict[str, int | bool]:
        return asdict(self)


def _new_record_id() -> str:
    return str(uuid.uuid4())


def _new_idempotency_key() -> str:
    return secrets.token_hex(16)


class DeliveryEngine:
    """Drives queued votes to the acceptor.

    Args:
        store: Durable record store; the engine is its only writer.
        transport: Delivery collaborator returning a ``DeliveryOutcome``.
        signer: Produces the integrity tag over ``id + idempotency_key``.
        connectivity: Shared online flag; offline defers every attempt.
        backoff: Policy computing when a failed record is eligible again.
        clock: Returns the current aware UTC time.
        attempt_timeout: Upper bound for one transport call, in seconds.
        max_concurrent_attempts: Transport calls allowed in flight per sweep.
    """

    def __init__(
        self,
        store: RecordStore,
        transport: Transport,
        signer: Signer,
        *,
        connectivity: ConnectivityState | None = None,
        backoff: BackoffPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
        max_concurrent_attempts: int = 1,
        id_factory: Callable[[], str] = _new_record_id,
        key_factory: Callable[[], str] = _new_idempotency_key,
    ) -> None:
        if attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be > 0")
        if max_concurrent_attempts < 1:
            raise ValueError("max_concurrent_attempts must be >= 1")

        self.store = store
        self.transport = transport
        self.connectivity = connectivity or ConnectivityState()
        self._signer = signer
        self._backoff = backoff or BackoffPolicy()
        self._clock = clock
        self._attempt_timeout = attempt_timeout
        self._max_concurrent = max_concurrent_attempts
        self._id_factory = id_factory
        self._key_factory = key_factory

        self._drain = asyncio.Event()
        self.last_report: SweepReport | None = None

    @property
    def sweeping(self) -> bool:
        return self.store.sweep_lock.locked()

    async def cast(self, choice: str) -> VoteRecord:
        """Create, sign and durably queue a new vote.

        Raises:
            StorageUnavailable: The vote was not persisted; the caller may retry.
        """
        record_id = self._id_factory()
        idempotency_key = self._key_factory()
        record = VoteRecord(
            id=record_id,
            idempotency_key=idempotency_key,
            integrity_tag=self._signer.sign(integrity_message(record_id, idempotency_key)),
            status=VoteStatus.QUEUED,
            retry_count=0,
            choice=choice,
            created_at=self._clock(),
        )
        await asyncio.to_thread(self.store.put, record)
        logger.debug("Queued vote %s (key %s)", record.id, record.idempotency_key)
        return record

    def cancel_sweep(self) -> None:
        """Stop claiming new records in the current sweep.

        Attempts already in flight run to completion or time out and their
        outcome is persisted normally.
        """
        self._drain.set()

    async def sweep(self) -> SweepReport:
        """Attempt delivery of every eligible record once.

        A call made while another sweep is in flight on the same store, from this
        or any other engine, returns immediately with ``skipped=True``.

        Raises:
            StorageUnavailable: Eligible records could not be listed.
        """
        if self.store.sweep_lock.locked():
            logger.debug("Sweep already in flight; skipping")
            return SweepReport(skipped=True)

        async with self.store.sweep_lock:
            self._drain.clear()
            report = SweepReport()

            await self._recover_orphans(report)

            now = self._clock()
            queued = await asyncio.to_thread(self._snapshot, VoteStatus.QUEUED)
            failed = await asyncio.to_thread(self._snapshot, VoteStatus.FAILED)
            eligible = sorted(
                [*queued, *(record for record in failed if self._is_due(record, now))],
                key=lambda record: record.id,
            )

            if eligible:
                semaphore = asyncio.Semaphore(self._max_concurrent)
                results = await asyncio.gather(
                    *(self._deliver(record, semaphore, report) for record in eligible),
                    return_exceptions=True,
                )
                errors = [result for result in results if isinstance(result, BaseException)]
                if errors:
                    raise errors[0]

            if report.attempted or report.deferred or report.recovered or report.store_errors:
                logger.info(
                    "Sweep finished: attempted=%d delivered=%d failed=%d deferred=%d "
                    "store_errors=%d recovered=%d",
                    report.attempted,
                    report.delivered,
                    report.failed,
                    report.deferred,
                    report.store_errors,
                    report.recovered,
                )
            self.last_report = report
            return report

    def _snapshot(self, status: VoteStatus) -> tuple[VoteRecord, ...]:
        return tuple(self.store.list_by_status(status))

    @staticmethod
    def _is_due(record: VoteRecord, now: datetime) -> bool:
        return record.next_attempt_at is None or record.next_attempt_at <= now

    async def _recover_orphans(self, report: SweepReport) -> None:
        """Return records left in ``sending`` by an interrupted process to ``queued``.

        The store's sweep lock is held, so no claim can be live here.
        """
        orphans = await asyncio.to_thread(self._snapshot, VoteStatus.SENDING)
        for record in orphans:
            try:
                await asyncio.to_thread(
                    self.store.put, replace(record, status=VoteStatus.QUEUED)
                )
            except StorageUnavailable:
                report.store_errors += 1
                continue
            report.recovered += 1
            logger.warning("Recovered vote %s left in sending state", record.id)

    async def _deliver(
        self, record: VoteRecord, semaphore: asyncio.Semaphore, report: SweepReport
    ) -> None:
        async with semaphore:
            if self._drain.is_set() or not self.connectivity.online:
                report.deferred += 1
                return

            claimed = replace(record, status=VoteStatus.SENDING)
            try:
                await asyncio.to_thread(self.store.put, claimed)
            except StorageUnavailable:
                # No durable claim, so no attempt this sweep.
                report.store_errors += 1
                return

            report.attempted += 1
            outcome = await self._attempt(claimed)

            if outcome == DeliveryOutcome.SUCCESS:
                await self._confirm(claimed, report)
            else:
                await self._fail(claimed, report)

    async def _attempt(self, record: VoteRecord) -> DeliveryOutcome:
        try:
            return await asyncio.wait_for(
                self.transport.attempt(record), timeout=self._attempt_timeout
            )
        except TimeoutError:
            logger.warning(
                "Delivery of vote %s timed out after %.1fs", record.id, self._attempt_timeout
            )
        except Exception:
            logger.error("Transport raised while delivering vote %s", record.id, exc_info=True)
        return DeliveryOutcome.TRANSIENT_FAILURE

    async def _confirm(self, record: VoteRecord, report: SweepReport) -> None:
        try:
            await asyncio.to_thread(self.store.delete, record.id)
        except StorageUnavailable:
            # Stays in sending; the next sweep requeues it and the acceptor dedups.
            report.store_errors += 1
            return
        report.delivered += 1
        logger.info("Delivered vote %s (key %s)", record.id, record.idempotency_key)

    async def _fail(self, record: VoteRecord, report: SweepReport) -> None:
        failed_at = self._clock()
        retry_count = record.retry_count + 1
        failed = replace(
            record,
            status=VoteStatus.FAILED,
            retry_count=retry_count,
            last_failure_at=failed_at,
            next_attempt_at=self._backoff.next_attempt_at(failed_at, retry_count),
        )
        try:
            await asyncio.to_thread(self.store.put, failed)
        except StorageUnavailable:
            report.store_errors += 1
            return
        report.failed += 1
        logger.debug(
            "Vote %s failed (retry %d); next attempt at %s",
            record.id,
            retry_count,
            failed.next_attempt_at.isoformat() if failed.next_attempt_at else "now",
        )
