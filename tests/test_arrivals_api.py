import pytest
from fastapi.testclient import TestClient

from conftest import SERVER_TIME, FakeTransport, feed_body, version_array
from countdown.core.app_config import AppConfig
from countdown.main import app
from countdown.models.transit import JourneyProgressEntry, Stop, StopKind, Vehicle

MINUTE = 60_000


def test_select_stop_fetches_detail_and_messages(
    client: TestClient, transport: FakeTransport
) -> None:
    transport.add(
        feed_body(version_array(), [1, "Aldwych", "STBC", "Trafalgar Square", "R", 51.5, -0.11])
    )
    transport.add(
        feed_body(version_array(), [2, 0, "Stop closed", SERVER_TIME - MINUTE, SERVER_TIME + MINUTE])
    )

    response = client.put("/api/stop/58308")

    assert response.status_code == 200
    payload = response.json()
    assert payload["stop"]["id"] == "58308"
    assert payload["stop"]["name"] == "Aldwych"
    assert payload["stop"]["kind"] == "bus"
    assert payload["messages"] == " * Stop closed"
    assert payload["is_favorite"] is False


def test_feed_outage_still_answers(client: TestClient, transport: FakeTransport) -> None:
    transport.fail()
    transport.fail()

    response = client.put("/api/stop/58308")

    assert response.status_code == 200
    assert response.json()["stop"]["name"] == ""


def test_arrivals_are_sorted_by_eta(client: TestClient, orchestrator) -> None:
    orchestrator.current_stop = Stop(id="58308", name="Aldwych", kind=StopKind.BUS)
    orchestrator.arrivals_container.replace(
        [
            Vehicle(id="A", line="9", destination="Aldwych", eta=7),
            Vehicle(id="B", line="15", destination="Tower", eta=-1),
            Vehicle(id="C", line="9", destination="Aldwych", eta=7),
            Vehicle(id="D", line="N1", destination="Waterloo", eta=2),
        ]
    )

    response = client.get("/api/arrivals")

    assert response.status_code == 200
    assert [v["id"] for v in response.json()["vehicles"]] == ["B", "D", "A", "C"]
    assert [v["id"] for v in orchestrator.arrivals_container] == ["A", "B", "C", "D"]


def test_start_arrivals_without_stop_is_conflict(client: TestClient) -> None:
    response = client.post("/api/arrivals/start")
    assert response.status_code == 409
    assert response.json()["code"] == 409


def test_start_and_stop_arrivals(client: TestClient, orchestrator, transport) -> None:
    orchestrator.current_stop = Stop(id="58308", kind=StopKind.BUS)
    transport.add(feed_body(version_array()))

    assert client.post("/api/arrivals/start").json() == {"running": True}
    assert client.post("/api/arrivals/stop").json() == {"running": False}
    assert client.get("/api/arrivals").json()["vehicles"] == []


def test_journey_progress_projection(client: TestClient, orchestrator) -> None:
    response = client.put("/api/vehicle", json={"id": "LJ1", "line": "9", "destination": "Aldwych"})
    assert response.status_code == 204
    orchestrator.journey_progress_container.replace(
        [
            JourneyProgressEntry(stop_name="Strand", eta_epoch_ms=SERVER_TIME + MINUTE),
            JourneyProgressEntry(stop_name="Aldwych", eta_epoch_ms=SERVER_TIME + 4 * MINUTE),
        ],
        SERVER_TIME,
    )

    payload = client.get("/api/journey-progress").json()

    assert payload["vehicle_id"] == "LJ1"
    assert payload["line"] == "9"
    assert payload["next_stop"] == "Strand"
    assert payload["stops"] == [
        {"stop_name": "Strand", "eta_minutes": 1},
        {"stop_name": "Aldwych", "eta_minutes": 4},
    ]


def test_journey_progress_start_without_vehicle(client: TestClient) -> None:
    assert client.post("/api/journey-progress/start").json() == {"running": False}


def test_status(client: TestClient, orchestrator) -> None:
    orchestrator.current_stop_messages = " * Stop closed"

    payload = client.get("/api/status").json()

    assert payload["downloading"] == {
        "arrivals": False,
        "journey_progress": False,
        "stop": False,
        "list_of_stops": False,
        "stations": False,
    }
    assert payload["arrivals_timer_progress"] == 0.0
    assert payload["messages"] == " * Stop closed"
    assert payload["next_stop"] == ""


def test_search_and_favorite_stops(client: TestClient, transport: FakeTransport) -> None:
    transport.add(
        feed_body(
            version_array(),
            [1, "Aldwych", "58308", "STBC", "Trafalgar Square", "R", 51.5125, -0.1171],
        )
    )

    search = client.post("/api/stops/search", params={"name": "Aldwych"}).json()
    assert search["total"] == 1

    favorite = client.put("/api/favorites/58308").json()
    assert favorite == {"code": "58308", "favorite": True, "ok": True}

    removed = client.delete("/api/favorites/58308").json()
    assert removed == {"code": "58308", "favorite": False, "ok": True}


def test_search_requires_name(client: TestClient) -> None:
    response = client.post("/api/stops/search")
    assert response.status_code == 422


def test_list_stops_by_kind(client: TestClient, transport: FakeTransport) -> None:
    transport.add(b"code,name,type,latitude,longitude\n74001,Embankment Pier,SLRS,51.5,-0.12\n")

    payload = client.get("/api/stops", params={"kind": "river"}).json()

    assert payload["total"] == 1
    assert payload["stops"][0]["kind"] == "river"


def test_lifespan_runs_scheduler_and_closes_transport(
    orchestrator, transport: FakeTransport, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("countdown.main.get_orchestrator", lambda: orchestrator)

    with TestClient(app):
        assert orchestrator.scheduler.running

    assert not orchestrator.scheduler.running
    assert transport.closed


def test_lifespan_selects_default_stop(
    orchestrator, transport: FakeTransport, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("countdown.main.get_orchestrator", lambda: orchestrator)
    monkeypatch.setattr("countdown.main.app_config", AppConfig(default_stop_code="58308"))
    transport.add(
        feed_body(version_array(), [1, "Aldwych", "STBC", "Trafalgar Square", "R", 51.5, -0.11])
    )
    transport.add(feed_body(version_array(), [1, "9", 1, "Aldwych", "LJ1", SERVER_TIME]))

    with TestClient(app):
        assert orchestrator.current_stop.name == "Aldwych"
        assert orchestrator.arrivals.running

    assert not orchestrator.arrivals.running
