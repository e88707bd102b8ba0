"""Fixtures compartidas de los tests del bridge."""

from typing import List

import pytest

from beacon_bridge.allowlist import AllowlistStore
from beacon_bridge.domain.reading import Reading
from beacon_bridge.forwarding import ForwardOutcome
from beacon_bridge.mqtt import MessageRouter
from beacon_bridge.throttle import ThrottleEngine


class FakeClock:
    """Reloj monotónico controlable."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingForwarder:
    """Forwarder falso que guarda las lecturas recibidas."""

    def __init__(self, outcome: ForwardOutcome = ForwardOutcome.SENT):
        self.outcome = outcome
        self.readings: List[Reading] = []

    async def forward(self, reading: Reading) -> ForwardOutcome:
        self.readings.append(reading)
        return self.outcome

    @property
    def payloads(self) -> List[dict]:
        return [r.to_ingest_payload() for r in self.readings]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def throttle(clock) -> ThrottleEngine:
    return ThrottleEngine(interval_seconds=60, delta_threshold=0.3, clock=clock)


@pytest.fixture
def forwarder() -> RecordingForwarder:
    return RecordingForwarder()


@pytest.fixture
def open_allowlist() -> AllowlistStore:
    """Allowlist vacía → fail-open."""
    return AllowlistStore()


@pytest.fixture
def router(open_allowlist, throttle, forwarder) -> MessageRouter:
    return MessageRouter(open_allowlist, throttle, forwarder)
