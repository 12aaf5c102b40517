"""Test configuration for pytest."""

import pytest

from wave_ledger.persistence.ledger import WaveLedger


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "conformance: API contract conformance tests")


class FakeClock:
    """Deterministic clock returning strictly increasing Unix seconds."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    """In-memory ledger with a deterministic clock."""
    return WaveLedger(clock=clock)
