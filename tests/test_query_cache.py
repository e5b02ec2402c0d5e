import asyncio

import pytest

from link_tracker.schemas.result import Err, Ok
from link_tracker.services.query_cache import QueryCache, QueryStatus, key_matches, make_key


class Counter:
    """Fetch function counting its calls; optionally held by an event."""

    def __init__(self, results=None, gate: asyncio.Event | None = None):
        self.calls = 0
        self.results = list(results or [])
        self.gate = gate

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.results:
            return self.results.pop(0)
        return Ok(value=f"value-{self.calls}")


def test_make_key_compares_filters_by_value():
    assert make_key("clicks", 1, 10, {"country": "US", "is_bot": True}) == \
        make_key("clicks", 1, 10, {"is_bot": True, "country": "US"})
    assert make_key("clicks", 1, 10, {}) != make_key("clicks", 1, 10, {"country": "US"})
    assert hash(make_key("links", 1, 10, {"a": [1, 2]})) == hash(make_key("links", 1, 10, {"a": [1, 2]}))


def test_key_matches_prefix():
    key = make_key("links", 2, 10, {})
    assert key_matches(key, ("links",))
    assert key_matches(key, ())
    assert not key_matches(key, ("clicks",))
    assert not key_matches(make_key("linkStats", 1), ("links",))


def test_concurrent_resolves_share_one_fetch(cache):
    fetch = Counter()

    async def scenario():
        first = cache.resolve(make_key("links", 1, 10, {}), fetch)
        second = cache.resolve(make_key("links", 1, 10, {}), fetch)
        assert first.is_loading and second.is_loading
        return await cache.fetch(make_key("links", 1, 10, {}), fetch)

    state = asyncio.run(scenario())
    assert fetch.calls == 1
    assert state.is_success
    assert state.data == "value-1"


def test_fresh_entry_is_served_without_fetch(cache, clock):
    fetch = Counter()

    async def scenario():
        await cache.fetch(("links",), fetch)
        clock.advance(10)
        return cache.resolve(("links",), fetch)

    state = asyncio.run(scenario())
    assert fetch.calls == 1
    assert state.data == "value-1"
    assert not state.is_fetching


def test_stale_entry_returned_while_refetching(cache, clock):
    fetch = Counter()

    async def scenario():
        await cache.fetch(("links",), fetch)
        clock.advance(30)
        during = cache.resolve(("links",), fetch)
        after = await cache.fetch(("links",), fetch)
        return during, after

    during, after = asyncio.run(scenario())
    assert during.status is QueryStatus.SUCCESS
    assert during.data == "value-1"
    assert during.is_fetching
    assert after.data == "value-2"
    assert fetch.calls == 2


def test_per_call_stale_time(cache, clock):
    fetch = Counter()

    async def scenario():
        await cache.fetch(("links",), fetch)
        clock.advance(5)
        return await cache.fetch(("links",), fetch, stale_time=0)

    state = asyncio.run(scenario())
    assert fetch.calls == 2
    assert state.data == "value-2"


def test_disabled_query_never_fetches(cache):
    fetch = Counter()

    async def scenario():
        resolved = cache.resolve(("linkStats", None), fetch, enabled=False)
        fetched = await cache.fetch(("linkStats", None), fetch, enabled=False)
        return resolved, fetched

    resolved, fetched = asyncio.run(scenario())
    assert fetch.calls == 0
    for state in (resolved, fetched):
        assert state.status is QueryStatus.IDLE
        assert not state.is_loading
        assert state.data is None


def test_disabled_query_does_not_report_other_keys_data(cache):
    fetch = Counter()

    async def scenario():
        await cache.fetch(("linkStats", 1), fetch)
        return cache.resolve(("linkStats", None), fetch, enabled=False)

    state = asyncio.run(scenario())
    assert state.data is None
    assert state.key == ("linkStats", None)


def test_failure_is_stored_and_retried_on_next_resolve(cache):
    fetch = Counter(results=[Err(reason="Failed to fetch links", status_code=500)])

    async def scenario():
        failed = await cache.fetch(("links",), fetch)
        retried = await cache.fetch(("links",), fetch)
        return failed, retried

    failed, retried = asyncio.run(scenario())
    assert failed.is_error
    assert failed.error.reason == "Failed to fetch links"
    assert failed.data is None
    assert retried.is_success
    assert retried.error is None
    assert fetch.calls == 2


def test_failure_does_not_touch_other_keys(cache):
    ok = Counter()
    broken = Counter(results=[Err(reason="boom")])

    async def scenario():
        await cache.fetch(("links", 1), ok)
        await cache.fetch(("clicks", 1), broken)

    asyncio.run(scenario())
    assert cache.get_state(("links", 1)).is_success
    assert cache.get_state(("clicks", 1)).is_error


def test_exception_in_fetch_function_becomes_error(cache):
    async def explode():
        raise RuntimeError("socket closed")

    async def scenario():
        return await cache.fetch(("links",), explode)

    state = asyncio.run(scenario())
    assert state.is_error
    assert state.error.reason == "socket closed"


def test_untagged_result_is_an_error(cache):
    async def raw():
        return {"data": []}

    state = asyncio.run(cache.fetch(("links",), raw))
    assert state.is_error
    assert "expected Ok or Err" in state.error.reason


def test_invalidate_prefix_forces_refetch(cache):
    links = Counter()
    stats = Counter()

    async def scenario():
        await cache.fetch(make_key("links", 1, 10, {}), links)
        await cache.fetch(make_key("links", 2, 10, {}), links)
        await cache.fetch(make_key("linkStats", 1), stats)

        invalidated = cache.invalidate(("links",))
        assert sorted(invalidated) == [make_key("links", 1, 10, {}), make_key("links", 2, 10, {})]

        cache.resolve(make_key("linkStats", 1), stats)
        return await cache.fetch(make_key("links", 1, 10, {}), links)

    state = asyncio.run(scenario())
    assert links.calls == 3
    assert stats.calls == 1
    assert state.data == "value-3"
    assert not state.is_invalidated


def test_invalidation_during_fetch_leaves_entry_stale(cache):
    async def scenario():
        gate = asyncio.Event()
        fetch = Counter(gate=gate)
        cache.resolve(("links",), fetch)
        await asyncio.sleep(0)

        cache.invalidate(("links",))
        gate.set()
        await cache.fetch(("links",), fetch)
        return cache.get_state(("links",))

    state = asyncio.run(scenario())
    assert state.is_success
    assert state.is_invalidated
    assert cache.is_stale(("links",))


def test_subscribers_see_every_transition(cache):
    seen = []
    unsubscribe = cache.subscribe(lambda key, state: seen.append((key, state.status)))

    async def scenario():
        await cache.fetch(("links",), Counter())
        unsubscribe()
        await cache.fetch(("clicks",), Counter())

    asyncio.run(scenario())
    assert seen == [(("links",), QueryStatus.LOADING), (("links",), QueryStatus.SUCCESS)]


def test_remove_drops_entries(cache):
    async def scenario():
        await cache.fetch(("links", 1), Counter())
        await cache.fetch(("clicks", 1), Counter())
        assert cache.remove(("links",)) == 1

    asyncio.run(scenario())
    assert ("links", 1) not in cache
    assert cache.keys() == [("clicks", 1)]
    cache.clear()
    assert len(cache) == 0


def test_resolve_needs_running_loop():
    cache = QueryCache()
    with pytest.raises(RuntimeError):
        cache.resolve(("links",), Counter())
