from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from datetime import datetime, timedelta, timezone

import pytest

from core.stream import Stream

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def velocity_stream() -> Stream:
    """Broadband velocity stream with a high-pass filter (100 Hz, 1e6 counts per m/s)."""
    stream = Stream(name="WEL", latitude=-41.28, longitude=174.77, rate=100.0, gain=1.0e6, q=0.98)
    stream.init("NZ_WEL_10_HHZ", timedelta(seconds=60), 4)
    return stream


@pytest.fixture
def acceleration_stream() -> Stream:
    """Strong motion stream with integrator + high-pass (200 Hz, 1e5 counts per m/s^2)."""
    stream = Stream(name="WEL", latitude=-41.28, longitude=174.77, rate=200.0, gain=1.0e5, q=0.98)
    stream.init("NZ_WEL_20_HNZ", timedelta(seconds=60), 4)
    return stream


@pytest.fixture
def passthrough_stream() -> Stream:
    """Stream without filters: samples are only divided by the gain."""
    stream = Stream(name="PASS", latitude=-41.0, longitude=175.0, rate=10.0, gain=100.0, q=0.0)
    stream.init("NZ_PASS_10_HHZ", timedelta(seconds=5), 4)
    return stream
