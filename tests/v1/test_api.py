"""API tests for the vote and sync endpoints."""

from __future__ import annotations

from typing import Any

from ballot_relay.services.store import StorageUnavailable, VoteStatus
from ballot_relay.services.transport import DeliveryOutcome


def test_health(client: Any) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_describes_the_service(client: Any) -> None:
    body = client.get("/").json()

    assert body["name"] == "Ballot Relay"
    assert body["docs"] == "/docs"


def test_cast_vote_queues_it(client: Any, relay) -> None:
    response = client.post("/api/v1/votes/", json={"choice": "candidate-a"})

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == VoteStatus.QUEUED.value
    assert body["retry_count"] == 0
    assert body["choice"] == "candidate-a"
    stored = relay.store.get(body["id"])
    assert stored is not None
    assert stored.idempotency_key == body["idempotency_key"]


def test_cast_vote_rejects_empty_choice(client: Any) -> None:
    response = client.post("/api/v1/votes/", json={"choice": ""})

    assert response.status_code == 422


def test_cast_vote_reports_storage_failure(client: Any, relay, mocker) -> None:
    mocker.patch.object(relay.engine, "cast", side_effect=StorageUnavailable("disk gone"))

    response = client.post("/api/v1/votes/", json={"choice": "candidate-a"})

    assert response.status_code == 503


def test_list_and_get_votes(client: Any) -> None:
    first = client.post("/api/v1/votes/", json={"choice": "a"}).json()
    second = client.post("/api/v1/votes/", json={"choice": "b"}).json()

    listed = client.get("/api/v1/votes/").json()
    fetched = client.get(f"/api/v1/votes/{first['id']}")

    assert sorted(vote["id"] for vote in listed) == sorted([first["id"], second["id"]])
    assert fetched.status_code == 200
    assert fetched.json()["choice"] == "a"


def test_get_unknown_vote_is_404(client: Any) -> None:
    response = client.get("/api/v1/votes/does-not-exist")

    assert response.status_code == 404


def test_sweep_endpoint_delivers_queued_votes(client: Any, acceptor) -> None:
    vote = client.post("/api/v1/votes/", json={"choice": "a"}).json()

    report = client.post("/api/v1/sync/sweep").json()

    assert report["delivered"] == 1
    assert [call.id for call in acceptor.calls] == [vote["id"]]
    assert client.get(f"/api/v1/votes/{vote['id']}").status_code == 404


def test_failed_delivery_is_visible_in_listing(client: Any, acceptor) -> None:
    acceptor.default = DeliveryOutcome.TRANSIENT_FAILURE
    vote = client.post("/api/v1/votes/", json={"choice": "a"}).json()

    client.post("/api/v1/sync/sweep")
    fetched = client.get(f"/api/v1/votes/{vote['id']}").json()

    assert fetched["status"] == VoteStatus.FAILED.value
    assert fetched["retry_count"] == 1
    assert fetched["next_attempt_at"] is not None


def test_status_reports_queue_and_last_sweep(client: Any) -> None:
    client.post("/api/v1/votes/", json={"choice": "a"})

    before = client.get("/api/v1/sync/status").json()
    client.post("/api/v1/sync/sweep")
    after = client.get("/api/v1/sync/status").json()

    assert before["online"] is True
    assert before["pending"] == 1
    assert before["scheduler_running"] is True
    assert before["transport"] is None
    assert after["pending"] == 0
    assert after["last_sweep"]["delivered"] == 1


def test_offline_toggle_defers_delivery(client: Any, acceptor) -> None:
    status = client.put("/api/v1/sync/connectivity", json={"online": False}).json()
    client.post("/api/v1/votes/", json={"choice": "a"})

    report = client.post("/api/v1/sync/sweep").json()

    assert status["online"] is False
    assert report["attempted"] == 0
    assert report["deferred"] == 1
    assert acceptor.calls == []


def test_going_back_online_is_reflected_in_status(client: Any, relay) -> None:
    client.put("/api/v1/sync/connectivity", json={"online": False})

    status = client.put("/api/v1/sync/connectivity", json={"online": True}).json()

    assert status["online"] is True
    assert relay.engine.connectivity.online


def test_sweep_endpoint_reports_storage_failure(client: Any, relay, mocker) -> None:
    mocker.patch.object(
        relay.store, "list_by_status", side_effect=StorageUnavailable("read failed")
    )

    response = client.post("/api/v1/sync/sweep")

    assert response.status_code == 503
