import asyncio
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from ambulance_dispatch import config, web_app
from ambulance_dispatch.models import Event, EventType
from ambulance_dispatch.simulator import FleetSimulator
from ambulance_dispatch.system import DispatchSystem
from ambulance_dispatch.web_app import _offer, build_default_app, create_app, format_sse


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app(system=DispatchSystem(), seed_fleet=False))


def _add_ambulance(client: TestClient, vehicle_id: str, lat: float, lng: float, level: str = "advanced",
                   status: str = "available") -> dict:
    resp = client.post(
        "/api/ambulances",
        json={
            "vehicle_id": vehicle_id,
            "status": status,
            "location": {"latitude": lat, "longitude": lng},
            "equipment_level": level,
            "crew_size": 2,
        },
    )
    assert resp.status_code == 200
    return resp.json()


def _add_call(client: TestClient, severity: int = 1) -> dict:
    resp = client.post(
        "/api/calls",
        json={"location": {"latitude": 5.6037, "longitude": -0.1870}, "severity_level": severity,
              "address": "Osu, Accra"},
    )
    assert resp.status_code == 200
    return resp.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_dispatch_flow(client: TestClient) -> None:
    _add_ambulance(client, "GH-AMB-101", 5.61, -0.18, level="basic")
    critical = _add_ambulance(client, "GH-AMB-102", 5.60, -0.19, level="critical")
    call = _add_call(client, severity=1)
    assert call["status"] == "pending"

    resp = client.post("/api/dispatch", json={"call_id": call["id"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["ambulance"]["id"] == critical["id"]
    assert body["dispatch"]["call_id"] == call["id"]
    assert body["dispatch"]["status"] == "dispatched"
    assert 0 <= body["score"]["total"] <= 1

    calls = client.get("/api/calls").json()
    assert calls[0]["status"] == "assigned"
    assert calls[0]["assigned_ambulance_id"] == critical["id"]
    assert len(client.get("/api/dispatch").json()) == 1

    again = client.post("/api/dispatch", json={"call_id": call["id"]})
    assert again.status_code == 409


def test_dispatch_errors(client: TestClient) -> None:
    missing = client.post("/api/dispatch", json={"call_id": 7})
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Call 7 not found"

    _add_ambulance(client, "GH-AMB-101", 5.61, -0.18, status="out_of_service")
    call = _add_call(client)
    no_capacity = client.post("/api/dispatch", json={"call_id": call["id"]})
    assert no_capacity.status_code == 409
    assert "No ambulance available" in no_capacity.json()["detail"]
    assert client.get("/api/dispatch").json() == []


@pytest.mark.parametrize(
    "payload",
    [
        {"location": {"latitude": 95, "longitude": 0}, "severity_level": 1},
        {"location": {"latitude": 5.6, "longitude": -181}, "severity_level": 1},
        {"location": {"latitude": 5.6, "longitude": -0.18}, "severity_level": 5},
        {"location": {"latitude": 5.6, "longitude": -0.18}, "severity_level": 2, "caller_phone": "12"},
    ],
)
def test_invalid_call_is_rejected(client: TestClient, payload: dict) -> None:
    assert client.post("/api/calls", json=payload).status_code == 422
    assert client.get("/api/calls").json() == []


def test_invalid_ambulance_is_rejected(client: TestClient) -> None:
    resp = client.post(
        "/api/ambulances",
        json={
            "vehicle_id": "GH-AMB-101",
            "status": "available",
            "location": {"latitude": 5.6, "longitude": -0.18},
            "equipment_level": "advanced",
            "crew_size": 7,
        },
    )
    assert resp.status_code == 422
    assert client.get("/api/ambulances").json() == []


def test_cancel_and_arrival_endpoints(client: TestClient) -> None:
    _add_ambulance(client, "GH-AMB-101", 5.61, -0.18)
    first = _add_call(client)
    second = _add_call(client, severity=3)

    client.post("/api/dispatch", json={"call_id": first["id"]})
    arrival = client.post(f"/api/calls/{first['id']}/arrival")
    assert arrival.status_code == 200
    assert arrival.json()["status"] == "arrived"
    assert arrival.json()["response_time_seconds"] >= 0
    assert client.post(f"/api/calls/{second['id']}/arrival").status_code == 409

    cancelled = client.post(f"/api/calls/{second['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"/api/calls/{second['id']}/cancel").status_code == 409
    assert client.post("/api/calls/99/cancel").status_code == 404


def test_candidates_endpoint(client: TestClient) -> None:
    _add_ambulance(client, "GH-AMB-101", 5.61, -0.18, level="basic")
    _add_ambulance(client, "GH-AMB-102", 5.60, -0.19, level="critical")
    call = _add_call(client, severity=1)

    ranked = client.get(f"/api/calls/{call['id']}/candidates").json()
    assert [item["vehicle_id"] for item in ranked] == ["GH-AMB-102", "GH-AMB-101"]
    assert ranked[1]["breakdown"]["capability"] == 0
    assert client.get("/api/calls/99/candidates").status_code == 404


def test_hospitals(client: TestClient) -> None:
    hospitals = client.get("/api/hospitals").json()
    assert len(hospitals) == 5
    assert hospitals[0]["name"] == "Korle Bu Teaching Hospital"

    resp = client.post("/api/hospitals", json={"hospital_id": 5, "bed_update": -10})
    assert resp.status_code == 200
    assert resp.json()["hospital"]["available_emergency_beds"] == 0
    assert client.post("/api/hospitals", json={"hospital_id": 42, "bed_update": 1}).status_code == 404


def test_startup_seeds_fleet() -> None:
    app = create_app(system=DispatchSystem(), seed_fleet=True)
    with TestClient(app) as client:
        fleet = client.get("/api/ambulances").json()
    assert [amb["vehicle_id"] for amb in fleet] == [f"GH-AMB-{100 + i}" for i in range(1, 6)]


def test_format_sse() -> None:
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    frame = format_sse(Event(EventType.TICK, now))
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: "):]) == {"type": "tick", "now": "2024-03-01T12:00:00+00:00"}


def test_slow_stream_drops_events_when_queue_is_full() -> None:
    queue: asyncio.Queue = asyncio.Queue(maxsize=2)
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    for _ in range(5):
        _offer(queue, Event(EventType.TICK, now))
    assert queue.qsize() == 2


def test_import_builds_no_app(monkeypatch) -> None:
    assert not hasattr(web_app, "app")

    monkeypatch.setattr(config, "SIMULATOR_ENABLED", False)
    assert build_default_app().state.simulator is None

    monkeypatch.setattr(config, "SIMULATOR_ENABLED", True)
    simulator = build_default_app().state.simulator
    assert isinstance(simulator, FleetSimulator)
    assert not simulator.running
