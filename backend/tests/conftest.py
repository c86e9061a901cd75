"""
AudioScholar Backend — Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures:
    ├── fake_clock: Manually advanced monotonic clock for cooldown tests
    ├── recorded_sleeps: Sleep stand-in that records delays instead of waiting
    ├── key_manager_factory: Builds DefaultKeyRotationManager on the fake clock
    └── json_response: Helper to build httpx.Response objects for MockTransport
"""

import os

# Override settings before any audioscholar import reads the environment
os.environ["GEMINI_API_KEYS"] = ""
os.environ["GOOGLE_AI_API_KEY"] = ""
os.environ["CONVERTAPI_SECRETS"] = ""
os.environ["CONVERTAPI_SECRET"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from typing import List  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from audioscholar.services.key_rotation_manager import DefaultKeyRotationManager  # noqa: E402


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordedSleeps:
    """Callable sleep replacement; keeps every requested delay in seconds."""

    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def delays_ms(self) -> List[int]:
        return [round(d * 1000) for d in self.delays]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recorded_sleeps():
    return RecordedSleeps()


@pytest.fixture
def key_manager_factory(fake_clock):
    """
    Usage:
        manager = key_manager_factory({KeyProvider.GEMINI: ["keyA", "keyB"]})
    """

    def _build(key_sources, cooldown_seconds=60):
        return DefaultKeyRotationManager(
            key_sources, cooldown_seconds=cooldown_seconds, clock=fake_clock
        )

    return _build


@pytest.fixture
def json_response():
    def _build(status_code: int, payload=None) -> httpx.Response:
        if payload is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=payload)

    return _build
