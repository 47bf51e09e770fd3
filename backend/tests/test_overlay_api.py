"""Tests for overlay endpoints: snapshot, lead time and the WebSocket feeds."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator

import pytest
from brakepoint.broadcast import ZoneBroadcaster
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from httpx import AsyncClient

from backend.api.dependencies import get_broadcaster
from backend.api.main import app
from backend.api.routers.overlay import overlay_zones


@pytest.fixture
def ws_client() -> Generator[TestClient, None, None]:
    """Synchronous client sharing one event loop across requests and sockets."""
    with TestClient(app) as tc:
        yield tc


def _publish(tc: TestClient, reference_csv: bytes) -> str:
    response = tc.post(
        "/api/sessions/upload",
        files=[("reference", ("reference.csv", reference_csv, "text/csv"))],
    )
    assert response.status_code == 200, response.text
    sid = response.json()["session_id"]
    assert tc.post(f"/api/sessions/{sid}/publish").status_code == 200
    return sid


def _tick(pct: float, brake: float = 0.0, **extra: object) -> dict[str, object]:
    """Raw simulator tick: position, throttle and brake as 0-1 fractions."""
    return {
        "LapDistPct": pct / 100,
        "Throttle": 0.0 if brake else 1.0,
        "Brake": brake / 100,
        "SteeringWheelAngle": 0.0,
        "Speed": 55.0,
        **extra,
    }


@pytest.mark.asyncio
async def test_snapshot_empty(client: AsyncClient) -> None:
    response = await client.get("/api/overlay/snapshot")
    assert response.status_code == 200
    data = response.json()
    assert data["zones"] == []
    assert data["session_id"] is None
    assert data["lead_time_s"] == 2.5


@pytest.mark.asyncio
async def test_put_lead_time(client: AsyncClient) -> None:
    response = await client.put("/api/overlay/lead-time", json={"lead_time_s": 4.0})
    assert response.status_code == 200
    assert response.json()["lead_time_s"] == 4.0
    snapshot = (await client.get("/api/overlay/snapshot")).json()
    assert snapshot["lead_time_s"] == 4.0
    assert snapshot["version"] == response.json()["version"]


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [0, -1, 31])
async def test_put_lead_time_invalid(client: AsyncClient, value: float) -> None:
    response = await client.put("/api/overlay/lead-time", json={"lead_time_s": value})
    assert response.status_code == 422


def test_feed_alerts(ws_client: TestClient, reference_csv: bytes) -> None:
    _publish(ws_client, reference_csv)
    with ws_client.websocket_connect("/api/overlay/feed") as ws:
        ws.send_json(_tick(10.0))
        assert ws.receive_json()["severity"] == "none"

        ws.send_json(_tick(19.0))
        warn = ws.receive_json()
        assert warn["severity"] == "warn"
        assert warn["message"] == "Prepare 2"
        assert warn["pct"] == pytest.approx(19.0)

        ws.send_json(_tick(20.5))
        danger = ws.receive_json()
        assert danger["severity"] == "danger"
        assert danger["message"] == "BRAKE NOW"


def test_feed_follows_lead_time_changes(ws_client: TestClient, reference_csv: bytes) -> None:
    _publish(ws_client, reference_csv)
    with ws_client.websocket_connect("/api/overlay/feed") as ws:
        ws.send_json(_tick(16.0))
        assert ws.receive_json()["severity"] == "none"

        response = ws_client.put("/api/overlay/lead-time", json={"lead_time_s": 10.0})
        assert response.status_code == 200
        ws.send_json(_tick(16.0))
        assert ws.receive_json()["severity"] == "warn"


def test_feed_without_published_zones(ws_client: TestClient) -> None:
    with ws_client.websocket_connect("/api/overlay/feed") as ws:
        ws.send_json(_tick(20.5))
        assert ws.receive_json() == {
            "message": "",
            "severity": "none",
            "pct": pytest.approx(20.5),
            "lap_completed": False,
        }


def test_feed_tick_without_position(ws_client: TestClient) -> None:
    with ws_client.websocket_connect("/api/overlay/feed") as ws:
        ws.send_json({"Throttle": 1.0})
        data = ws.receive_json()
        assert data["severity"] == "none"
        assert data["pct"] is None

        ws.send_json([1, 2, 3])
        assert ws.receive_json()["pct"] is None


def test_feed_records_completed_lap(ws_client: TestClient, reference_csv: bytes) -> None:
    sid = _publish(ws_client, reference_csv)
    with ws_client.websocket_connect("/api/overlay/feed") as ws:
        for i in range(40):
            ws.send_json(_tick(i * 2.5, Lap=3))
            assert ws.receive_json()["lap_completed"] is False
        ws.send_json(_tick(0.5, Lap=3))
        assert ws.receive_json()["lap_completed"] is True
        # Counter ticking over right after the wrap does not close another lap
        ws.send_json(_tick(1.0, Lap=4))
        assert ws.receive_json()["lap_completed"] is False

    session = ws_client.get(f"/api/sessions/{sid}").json()
    assert session["recorded_laps"] == 1
    assert session["live_name"] == "recorded lap 3"
    assert session["n_live_samples"] == 40

    analysis = ws_client.get(f"/api/sessions/{sid}/analysis").json()
    assert analysis["has_live"] is True
    # The recorded lap never braked
    assert [c["type"] for c in analysis["callouts"]] == ["missed_brake", "missed_brake"]


def test_feed_ignores_lap_joined_mid_track(ws_client: TestClient, reference_csv: bytes) -> None:
    sid = _publish(ws_client, reference_csv)
    with ws_client.websocket_connect("/api/overlay/feed") as ws:
        for i in range(16):
            ws.send_json(_tick(60.0 + i * 2.5, Lap=3))
            assert ws.receive_json()["lap_completed"] is False
        ws.send_json(_tick(0.5, Lap=3))
        assert ws.receive_json()["lap_completed"] is False

    session = ws_client.get(f"/api/sessions/{sid}").json()
    assert session["recorded_laps"] == 0
    assert session["live_name"] is None
    assert ws_client.get(f"/api/sessions/{sid}/analysis").json()["has_live"] is False


def test_zones_stream(ws_client: TestClient, reference_csv: bytes) -> None:
    with ws_client.websocket_connect("/api/overlay/zones") as ws:
        initial = ws.receive_json()
        assert initial["zones"] == []

        sid = _publish(ws_client, reference_csv)
        update = ws.receive_json()
        assert update["version"] > initial["version"]
        assert update["session_id"] == sid
        assert update["zones"] == [
            {"start": 20.0, "end": 25.0},
            {"start": 60.0, "end": 64.0},
        ]


def test_zones_stream_receives_reset(ws_client: TestClient, reference_csv: bytes) -> None:
    async def _reset() -> None:
        get_broadcaster().reset()

    sid = _publish(ws_client, reference_csv)
    with ws_client.websocket_connect("/api/overlay/zones") as ws:
        assert ws.receive_json()["session_id"] == sid
        ws_client.portal.call(_reset)
        cleared = ws.receive_json()
        assert cleared["zones"] == []
        assert cleared["session_id"] is None


class _FailingSocket:
    """WebSocket whose sends fail and whose peer disconnects right after."""

    def __init__(self) -> None:
        self.send_attempted = asyncio.Event()

    async def accept(self) -> None:
        return None

    async def send_json(self, data: object) -> None:
        self.send_attempted.set()
        raise RuntimeError("socket already closed")

    async def receive_text(self) -> str:
        await self.send_attempted.wait()
        raise WebSocketDisconnect(code=1006)


@pytest.mark.asyncio
async def test_zones_stream_send_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    socket = _FailingSocket()
    with caplog.at_level(logging.WARNING, logger="backend.api.routers.overlay"):
        await overlay_zones(socket, ZoneBroadcaster())  # type: ignore[arg-type]
    assert socket.send_attempted.is_set()
    assert "Overlay zones forwarding stopped" in caplog.text
