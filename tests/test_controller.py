from __future__ import annotations

import asyncio

import httpx
import pytest

from reflex_user_grid.controller import ControllerRegistry, GridController
from reflex_user_grid.coordinator import FETCH_ERROR_MESSAGE, RequestCoordinator
from reflex_user_grid.models import SortState
from reflex_user_grid.widths import ColumnWidthStore, MemoryStorage

pytestmark = pytest.mark.asyncio

ENDPOINT = "https://users.test/users"
DELAY = 0.01


def _controller(client: httpx.AsyncClient, **kwargs) -> GridController:
    filter_mode = kwargs.pop("filter_mode", "local")
    coordinator = RequestCoordinator(client, endpoint=ENDPOINT, filter_mode=filter_mode)
    return GridController(coordinator, debounce_delay=DELAY, **kwargs)


def _ids(snapshot) -> list[int]:
    return [row["id"] for row in snapshot.rows]


async def test_initial_load_populates_rows(user_client) -> None:
    controller = _controller(user_client)
    snapshot = await controller.load()

    assert snapshot.total == 7
    assert _ids(snapshot) == [1, 2, 3, 4, 5, 6, 7]
    assert snapshot.page == 1
    assert snapshot.total_pages == 1
    assert not snapshot.loading
    assert snapshot.error == ""
    await controller.aclose()


async def test_loading_flag_is_set_while_fetching(user_client) -> None:
    controller = _controller(user_client)
    task = controller.load()
    assert controller.snapshot().loading
    await task
    assert not controller.snapshot().loading


async def test_page_size_must_be_offered() -> None:
    coordinator = RequestCoordinator(httpx.AsyncClient(), endpoint=ENDPOINT)
    with pytest.raises(ValueError):
        GridController(coordinator, page_size=7)


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


async def test_sort_cycles_through_three_states(user_client) -> None:
    controller = _controller(user_client)
    await controller.load()

    snapshot = await controller.toggle_sort("lastName")
    assert snapshot.sort == SortState("fio", "asc")
    assert snapshot.rows[0]["lastName"] == "Brown"
    # Every name column shares the composite key.
    assert controller.sort_indicator("patronymic") == "↑"
    assert controller.sort_indicator("age") == "—"

    snapshot = await controller.toggle_sort("firstName")
    assert snapshot.sort == SortState("fio", "desc")
    assert snapshot.rows[0]["lastName"] == "Wilson"
    assert controller.sort_indicator("lastName") == "↓"

    snapshot = await controller.toggle_sort("lastName")
    assert snapshot.sort == SortState()
    assert _ids(snapshot) == [1, 2, 3, 4, 5, 6, 7]
    await controller.aclose()


async def test_sort_returns_to_first_page(user_client) -> None:
    controller = _controller(user_client, page_size=5)
    await controller.load()
    await controller.next_page()

    snapshot = await controller.toggle_sort("age")
    assert snapshot.page == 1
    assert [row["age"] for row in snapshot.rows] == [22, 28, 30, 35, 38]
    await controller.aclose()


async def test_remote_sort_is_delegated(user_client, request_log) -> None:
    controller = _controller(user_client)
    await controller.toggle_sort("email")

    params = request_log[-1].url.params
    assert params["sortBy"] == "email"
    assert params["order"] == "asc"
    await controller.aclose()


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


async def test_filter_burst_triggers_one_fetch(user_client, request_log) -> None:
    controller = _controller(user_client)
    await controller.load()
    assert len(request_log) == 1

    for text in ("F", "Fo", "For", "Fort"):
        controller.set_filter("city", text)

    # The input shows the text at once; the query waits for quiet.
    assert controller.snapshot().filters["city"] == "Fort"
    assert controller.filter_values()["city"] == ""

    snapshot = await controller.wait_idle()
    assert len(request_log) == 2
    assert _ids(snapshot) == [5, 7]
    assert snapshot.total == 2
    assert controller.filter_values()["city"] == "Fort"
    await controller.aclose()


async def test_filter_resets_page(user_client) -> None:
    controller = _controller(user_client, page_size=5)
    await controller.load()
    await controller.next_page()

    controller.set_filter("gender", "м")
    snapshot = await controller.wait_idle()
    assert snapshot.page == 1
    assert _ids(snapshot) == [2, 4, 7]
    await controller.aclose()


async def test_remote_filter_mode(user_client, request_log) -> None:
    controller = _controller(user_client, filter_mode="remote")
    controller.set_filter("gender", "Ж")
    snapshot = await controller.wait_idle()

    assert request_log[-1].url.path.endswith("/filter")
    assert _ids(snapshot) == [1, 3, 5, 6]
    await controller.aclose()


async def test_unknown_filter_key(user_client) -> None:
    controller = _controller(user_client)
    with pytest.raises(KeyError):
        controller.set_filter("shoeSize", "42")


async def test_reset_filters_applies_immediately(user_client, request_log) -> None:
    controller = _controller(user_client)
    controller.set_filter("email", "wilson")
    snapshot = await controller.wait_idle()
    assert _ids(snapshot) == [6]

    controller.set_filter("city", "x")
    snapshot = await controller.reset_filters()
    assert snapshot.total == 7
    assert all(value == "" for value in snapshot.filters.values())
    # The pending keystroke was dropped, not applied afterwards.
    assert not any(r.url.params.get("limit") == "0" for r in request_log[1:])
    await controller.aclose()


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------


async def test_navigation_bounds(user_client) -> None:
    controller = _controller(user_client, page_size=5)
    snapshot = await controller.load()
    assert not snapshot.can_prev
    assert snapshot.can_next

    assert controller.prev_page() is None
    snapshot = await controller.next_page()
    assert snapshot.page == 2
    assert _ids(snapshot) == [6, 7]
    assert snapshot.can_prev
    assert not snapshot.can_next
    assert controller.next_page() is None
    assert controller.last_page() is None

    snapshot = await controller.first_page()
    assert snapshot.page == 1
    await controller.aclose()


async def test_set_page_is_clamped(user_client) -> None:
    controller = _controller(user_client, page_size=5)
    await controller.load()
    snapshot = await controller.set_page(99)
    assert snapshot.page == 2


async def test_page_size_change_clamps_page(sample_users, make_user_client) -> None:
    users = sample_users * 3 + sample_users[:2]
    client = make_user_client(users)
    controller = _controller(client)
    snapshot = await controller.load()
    assert snapshot.total == 23
    assert snapshot.total_pages == 3

    await controller.last_page()
    snapshot = await controller.set_page_size(20)
    assert snapshot.page == 2
    assert snapshot.total_pages == 2
    assert len(snapshot.rows) == 3
    await controller.aclose()


async def test_invalid_page_size_is_rejected(user_client) -> None:
    controller = _controller(user_client)
    with pytest.raises(ValueError):
        controller.set_page_size(15)


async def test_shrinking_remote_total_refetches_last_page(
    sample_users, request_log, make_user_client
) -> None:
    controller = _controller(make_user_client(sample_users, request_log), page_size=5)
    await controller.load()
    await controller.next_page()

    del sample_users[3:]
    snapshot = await controller.refresh()
    snapshot = await controller.wait_idle()

    assert snapshot.page == 1
    assert snapshot.total == 3
    assert _ids(snapshot) == [1, 2, 3]
    assert request_log[-1].url.params["skip"] == "0"
    await controller.aclose()


# ---------------------------------------------------------------------------
# Errors and races
# ---------------------------------------------------------------------------


async def test_error_keeps_previous_rows(user_endpoint) -> None:
    failing = {"on": False}

    def handler(request: httpx.Request) -> httpx.Response:
        if failing["on"]:
            return httpx.Response(502)
        return user_endpoint(request)

    controller = _controller(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    await controller.load()

    failing["on"] = True
    snapshot = await controller.refresh()
    assert snapshot.error == FETCH_ERROR_MESSAGE
    assert not snapshot.loading
    assert len(snapshot.rows) == 7

    failing["on"] = False
    snapshot = await controller.refresh()
    assert snapshot.error == ""
    await controller.aclose()


async def test_last_issued_request_wins(user_endpoint) -> None:
    gate = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        if "sortBy" not in request.url.params:
            await gate.wait()
        return user_endpoint(request)

    controller = _controller(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    slow = controller.load()
    fast = controller.toggle_sort("age")

    snapshot = await fast
    assert [row["age"] for row in snapshot.rows][:3] == [22, 28, 30]
    assert not snapshot.loading

    gate.set()
    await slow
    snapshot = controller.snapshot()
    assert snapshot.sort == SortState("age", "asc")
    assert [row["age"] for row in snapshot.rows][:3] == [22, 28, 30]
    await controller.aclose()


async def test_aclose_stops_outstanding_fetch(user_endpoint) -> None:
    gate = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await gate.wait()
        return user_endpoint(request)

    controller = _controller(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    task = controller.load()
    await asyncio.sleep(0)
    await controller.aclose()

    assert task.done()
    assert controller.snapshot().rows == ()
    assert controller.closed


async def test_bare_list_endpoint_still_pages(bare_list_client) -> None:
    controller = _controller(bare_list_client, page_size=5)
    snapshot = await controller.load()

    assert snapshot.total == 7
    assert snapshot.total_pages == 2
    assert snapshot.can_next
    assert _ids(snapshot) == [1, 2, 3, 4, 5]

    snapshot = await controller.next_page()
    assert _ids(snapshot) == [6, 7]
    assert not snapshot.can_next
    await controller.aclose()


# ---------------------------------------------------------------------------
# Selection and widths
# ---------------------------------------------------------------------------


async def test_select_and_clear_record(user_client) -> None:
    controller = _controller(user_client)
    await controller.load()

    selected = controller.select_record(3)
    assert selected is not None
    assert selected["firstName"] == "Sophia"
    assert controller.snapshot().selected["id"] == 3

    controller.clear_selection()
    assert controller.snapshot().selected is None
    assert controller.select_record(999) is None
    await controller.aclose()


async def test_selection_dropped_when_record_leaves_view(user_client) -> None:
    controller = _controller(user_client)
    await controller.load()
    controller.select_record(1)

    controller.set_filter("city", "fort")
    snapshot = await controller.wait_idle()
    assert snapshot.selected is None
    await controller.aclose()


async def test_resize_flows_into_snapshot(user_client) -> None:
    storage = MemoryStorage()
    controller = _controller(user_client, widths=ColumnWidthStore(storage=storage))

    controller.begin_resize("city", 500)
    assert controller.resizing
    assert controller.move_resize(440) == 100
    controller.end_resize()

    assert not controller.resizing
    assert controller.snapshot().column_widths["city"] == 100
    assert storage.data


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


async def test_registry_reuses_controller_per_key(user_client) -> None:
    registry = ControllerRegistry(max_size=4)
    first = registry.get_or_create("UsersState:tab-1", lambda: _controller(user_client))
    again = registry.get_or_create("UsersState:tab-1", lambda: _controller(user_client))
    other = registry.get_or_create("UsersState:tab-2", lambda: _controller(user_client))

    assert again is first
    assert other is not first
    assert len(registry) == 2
    await registry.aclose()


async def test_registry_evicts_and_closes_least_recent(user_client) -> None:
    registry = ControllerRegistry(max_size=2)
    a = registry.get_or_create("a", lambda: _controller(user_client))
    b = registry.get_or_create("b", lambda: _controller(user_client))
    registry.get_or_create("a", lambda: _controller(user_client))
    c = registry.get_or_create("c", lambda: _controller(user_client))
    await registry.wait_closed()

    assert b.closed
    assert not a.closed and not c.closed
    assert "b" not in registry
    assert len(registry) == 2
    # The client is shared, so evicting a controller leaves it open.
    assert not user_client.is_closed

    await registry.aclose()
    assert a.closed and c.closed
    assert len(registry) == 0


async def test_registry_replaces_a_closed_controller(user_client) -> None:
    registry = ControllerRegistry()
    first = registry.get_or_create("a", lambda: _controller(user_client))
    await first.aclose()

    second = registry.get_or_create("a", lambda: _controller(user_client))
    assert second is not first
    assert not second.closed
    await registry.aclose()


async def test_registry_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ControllerRegistry(max_size=0)
