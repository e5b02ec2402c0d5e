import asyncio

from link_tracker.api import LinkAPI
from link_tracker.schemas.link import LinkStats
from link_tracker.services.detail_controller import DetailOnDemand
from link_tracker.services.query_cache import QueryStatus


def stats_view(cache, api) -> DetailOnDemand:
    return DetailOnDemand(cache, "linkStats", lambda link_id: LinkAPI.get_link_stats(api, link_id))


def seed(api, *countries_and_bots):
    link = api.add_link()
    for country, is_bot in countries_and_bots:
        api.add_click(link["id"], country=country, is_bot=is_bot)
    return link


def test_nothing_selected_means_no_fetch(cache, api):
    async def scenario():
        view = stats_view(cache, api)
        mounted = view.mount()
        loaded = await view.load()
        return view, mounted, loaded

    view, mounted, loaded = asyncio.run(scenario())
    assert api.calls == []
    for state in (mounted, loaded, view.state):
        assert state.status is QueryStatus.IDLE
        assert not state.is_loading
    assert view.data is None


def test_select_fetches_stats_for_that_link(cache, api):
    link = seed(api, ("US", False), ("US", True), ("", False))

    async def scenario():
        view = stats_view(cache, api)
        view.mount()
        view.open(link["id"])
        assert view.is_loading
        await view.load()
        return view

    view = asyncio.run(scenario())
    assert view.visible
    assert view.data.total_clicks == 3
    assert view.data.bot_clicks == 1
    assert view.data.human_clicks == 2
    assert [(s.country, s.count) for s in view.data.country_stats] == [("US", 2), ("", 1)]


def test_clear_hides_previous_selection(cache, api):
    link = seed(api, ("US", False))

    async def scenario():
        view = stats_view(cache, api)
        view.mount()
        view.select(link["id"])
        await view.load()
        assert view.data is not None

        view.clear()
        state = view.refresh()
        return view, state

    view, state = asyncio.run(scenario())
    assert view.selected_id is None
    assert view.data is None
    assert state.data is None
    assert not state.is_loading
    assert api.count("GET", f"/links/{link['id']}/stats") == 1


def test_rapid_reselection_discards_first_response(cache, api):
    first = seed(api, ("US", False))
    second = seed(api, ("DE", True), ("DE", False))

    async def scenario():
        view = stats_view(cache, api)
        view.mount()
        gate = api.hold(f"/links/{first['id']}/stats")

        seen = []
        view.subscribe(lambda v: seen.append(v.data))

        view.select(first["id"])
        await asyncio.sleep(0)
        view.select(second["id"])
        await view.load()

        gate.set()
        for _ in range(5):
            await asyncio.sleep(0)
        return view, seen

    view, seen = asyncio.run(scenario())
    shown = [data for data in seen if data is not None]
    assert shown
    assert all(data.total_clicks == 2 for data in shown)
    assert view.selected_id == second["id"]
    assert view.data.total_clicks == 2
    assert cache.get_state(("linkStats", first["id"])).data.total_clicks == 1


def test_visibility_does_not_fetch(cache, api):
    link = seed(api)

    async def scenario():
        view = stats_view(cache, api)
        view.mount()
        view.show()
        view.hide()
        view.select(link["id"])
        await view.load()
        view.hide()
        view.show()
        view.clear()
        view.hide()
        return view

    view = asyncio.run(scenario())
    assert api.count("GET", f"/links/{link['id']}/stats") == 1
    assert not view.visible


def test_unknown_link_is_an_error(cache, api):
    async def scenario():
        view = stats_view(cache, api)
        view.select(404)
        await view.load()
        return view

    view = asyncio.run(scenario())
    assert view.is_error
    assert view.state.error.status_code == 404
    assert view.state.error.reason == "Link not found"
    assert view.data is None


def test_stats_payload_human_clicks():
    stats = LinkStats.model_validate({
        "total_clicks": 100,
        "bot_clicks": 30,
        "country_stats": [{"country": "US", "count": 60}, {"country": "", "count": 40}],
    })
    assert stats.human_clicks == 70
    assert stats.bot_clicks <= stats.total_clicks
    assert sum(entry.count for entry in stats.country_stats) == stats.total_clicks
