"""Tests for exponential backoff with jitter."""

from __future__ import annotations

import random
import math
from datetime import UTC, datetime, timedelta

import pytest

from ballot_relay.services.backoff import BackoffPolicy

BASE = 2.0


@pytest.mark.parametrize("retry_count", [0, 1, 2, 5, 10])
def test_delay_stays_within_jitter_bounds(retry_count: int) -> None:
    policy = BackoffPolicy(base_delay=BASE, rng=random.Random(retry_count))
    nominal = BASE * 2**retry_count

    for _ in range(200):
        delay = policy.next_delay(retry_count)
        assert nominal * 0.5 <= delay <= nominal * 1.5


def test_delay_is_non_decreasing_in_retry_count(mocker) -> None:
    policy = BackoffPolicy(base_delay=BASE)
    mocker.patch.object(policy, "jitter", return_value=0.5)

    delays = [policy.next_delay(k) for k in range(20)]

    assert delays == sorted(delays)
    assert delays[0] == BASE * 0.5
    assert delays[3] == BASE * 8 * 0.5


def test_next_attempt_at_is_offset_from_failure_time(mocker) -> None:
    policy = BackoffPolicy(base_delay=BASE)
    mocker.patch.object(policy, "jitter", return_value=1.0)
    failed_at = datetime(2026, 1, 1, tzinfo=UTC)

    assert policy.next_attempt_at(failed_at, 2) == failed_at + timedelta(seconds=8)


def test_jitter_spreads_clients_apart() -> None:
    policy = BackoffPolicy(base_delay=BASE, rng=random.Random(7))

    delays = {round(policy.next_delay(3), 6) for _ in range(50)}

    assert len(delays) > 1


def test_max_delay_caps_the_wait() -> None:
    policy = BackoffPolicy(base_delay=BASE, max_delay=30.0)

    assert policy.next_delay(20) == 30.0


def test_lower_bound_holds_for_every_retry_count(mocker) -> None:
    policy = BackoffPolicy(base_delay=1.0)
    mocker.patch.object(policy, "jitter", return_value=0.5)

    for k in range(1023):
        assert policy.next_delay(k) >= 1.0 * 2.0**k * 0.5
    assert policy.next_delay(1024) == math.inf
    assert policy.next_delay(10_000) == math.inf


def test_long_delays_are_not_capped_without_max_delay(mocker) -> None:
    policy = BackoffPolicy(base_delay=1.0)
    mocker.patch.object(policy, "jitter", return_value=0.5)
    failed_at = datetime(2026, 1, 1, tzinfo=UTC)

    assert policy.next_attempt_at(failed_at, 30) == failed_at + timedelta(seconds=2**29)


def test_unrepresentable_deadline_is_pinned_to_datetime_max() -> None:
    policy = BackoffPolicy(base_delay=BASE)
    failed_at = datetime(2026, 1, 1, tzinfo=UTC)
    latest = datetime.max.replace(tzinfo=UTC)

    assert policy.next_attempt_at(failed_at, 60) == latest
    assert policy.next_attempt_at(failed_at, 10_000) == latest


@pytest.mark.parametrize(
    "kwargs",
    [{"base_delay": 0}, {"base_delay": -1.0}, {"base_delay": 1.0, "max_delay": 0}],
)
def test_invalid_policy_is_rejected(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        BackoffPolicy(**kwargs)


def test_negative_retry_count_is_rejected() -> None:
    with pytest.raises(ValueError):
        BackoffPolicy().next_delay(-1)
