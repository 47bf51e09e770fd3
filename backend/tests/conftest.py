"""Test fixtures for the backend test suite."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator, Sequence

import numpy as np
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.api.dependencies import get_broadcaster
from backend.api.main import app
from backend.api.services.session_store import clear_all

# (start_pct, end_pct, brake_pressure) per braking zone
REFERENCE_ZONES = ((20.0, 25.0, 80.0), (60.0, 64.0, 60.0))
LATE_ZONES = ((22.0, 27.0, 80.0), (62.0, 66.0, 60.0))


def build_lap_csv(
    zones: Sequence[tuple[float, float, float]] = REFERENCE_ZONES,
    n: int = 401,
    blank_rows: int = 0,
) -> bytes:
    """Build a lap export CSV as bytes for upload testing.

    Full throttle everywhere except inside the braking zones.  ``blank_rows``
    appends rows without a lap position, which the parser must drop.
    """
    lines = ["LapDistPct,Throttle,Brake,SteeringWheelAngle,Speed,Time"]
    for pct in np.linspace(0.0, 100.0, n):
        pressure = next((p for s, e, p in zones if s <= pct < e), 0.0)
        throttle = 0.0 if pressure else 100.0
        speed = 30.0 if pressure else 60.0
        lines.append(f"{pct},{throttle},{pressure},0.0,{speed},{pct * 0.9:.3f}")
    lines.extend(",50,0,0,60," for _ in range(blank_rows))
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def reference_csv() -> bytes:
    return build_lap_csv()


@pytest.fixture
def late_csv() -> bytes:
    """Lap braking 2% later into every corner than the reference."""
    return build_lap_csv(LATE_ZONES)


@pytest.fixture(autouse=True)
def _reset_broadcaster() -> Generator[None, None, None]:
    """Start every test with no published overlay zones."""
    get_broadcaster().reset()
    yield
    get_broadcaster().reset()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an async HTTP test client wired to the FastAPI app.

    Clears the in-memory session store before and after each test.
    """
    clear_all()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    clear_all()
