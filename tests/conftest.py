from __future__ import annotations

import pytest

from helpers.fakes import FakeClock, FakeTransport
from midindex.core.cache import SnapshotCache


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> SnapshotCache:
    return SnapshotCache(default_ttl_ms=60_000, clock=clock)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
