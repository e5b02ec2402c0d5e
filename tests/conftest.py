import pytest

from fakes import FakeApi, FakeClock
from link_tracker.services.query_cache import QueryCache


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(stale_time=30.0, clock=clock)
