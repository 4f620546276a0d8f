"""The grid state machine: one controller owns sort/filter/page/width state.

Every user gesture maps to one synchronous transition method.  Transitions
that change what should be displayed schedule a fetch on the running event
loop and return the :class:`asyncio.Task`, so callers may await it (tests,
the CLI) or let it run (the Reflex state).

Typical usage::

    controller = GridController(RequestCoordinator())
    await controller.load()
    await controller.toggle_sort("age")
    controller.set_filter("city", "Phoenix")   # debounced
    snapshot = await controller.wait_idle()
"""

import asyncio
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Any

from reflex_user_grid.coordinator import FetchOutcome, RequestCoordinator, RequestToken
from reflex_user_grid.debounce import Debouncer
from reflex_user_grid.fields import get_field_value
from reflex_user_grid.models import (
    FILTER_KEYS,
    PAGE_SIZES,
    GridQuery,
    GridSnapshot,
    ResultSet,
    SortState,
    column_by_key,
    empty_filters,
)
from reflex_user_grid.paging import reconcile_page, total_pages
from reflex_user_grid.widths import ColumnWidthStore

_DEFAULT_PAGE_SIZE: int = 10
_DEFAULT_DEBOUNCE: float = 0.3


class GridController:
    """Composes the coordinator, debouncer, paging and width store.

    Args:
        coordinator: Issues and arbitrates fetches.
        page_size: Initial page size, one of :data:`PAGE_SIZES`.
        widths: Column width store; a default in-memory one when omitted.
        debounce_delay: Quiet window (seconds) before filter text applies.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        *,
        page_size: int = _DEFAULT_PAGE_SIZE,
        widths: ColumnWidthStore | None = None,
        debounce_delay: float = _DEFAULT_DEBOUNCE,
    ) -> None:
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page size must be one of {PAGE_SIZES}, got {page_size}")
        self._coordinator = coordinator
        self._widths = widths if widths is not None else ColumnWidthStore()
        self._debouncer: Debouncer[dict[str, str]] = Debouncer(
            self._apply_filters, delay=debounce_delay
        )

        # What the user typed (shown in the inputs immediately) vs. what
        # the last settled debounce applied to the query.
        self._filter_inputs: dict[str, str] = empty_filters()
        self._filters: dict[str, str] = empty_filters()
        self._sort = SortState()
        self._page = 1
        self._page_size = page_size

        self._result = ResultSet()
        self._loading = False
        self._error = ""
        self._selected_id: str | None = None
        self._task: asyncio.Task[GridSnapshot] | None = None
        self._tasks: set[asyncio.Task[GridSnapshot]] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def total_pages(self) -> int:
        return total_pages(self._result.total, self._page_size)

    def query(self) -> GridQuery:
        return GridQuery(
            page=self._page,
            page_size=self._page_size,
            sort=self._sort,
            filters=tuple(self._filters.items()),
        )

    def _selected(self) -> dict[str, Any] | None:
        if self._selected_id is None:
            return None
        for record in self._result.rows:
            if get_field_value(record, "id") == self._selected_id:
                return record
        return None

    def snapshot(self) -> GridSnapshot:
        pages = self.total_pages
        return GridSnapshot(
            rows=self._result.rows,
            total=self._result.total,
            page=self._page,
            page_size=self._page_size,
            total_pages=pages,
            sort=self._sort,
            filters=dict(self._filter_inputs),
            column_widths=self._widths.widths,
            loading=self._loading,
            error=self._error,
            selected=self._selected(),
            can_prev=self._page > 1,
            can_next=self._page < pages,
        )

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _schedule_refresh(self) -> asyncio.Task[GridSnapshot]:
        # The token is issued now, not when the task first runs, so a
        # response already in flight is invalidated immediately.
        token = self._coordinator.begin()
        self._loading = True
        self._error = ""
        task = asyncio.get_running_loop().create_task(self._run_fetch(self.query(), token))
        self._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_fetch(self, query: GridQuery, token: RequestToken) -> GridSnapshot:
        outcome = await self._coordinator.fetch_page(query, token)
        return await self._apply_outcome(outcome)

    async def _apply_outcome(self, outcome: FetchOutcome) -> GridSnapshot:
        if outcome.cancelled or not self._coordinator.is_current(outcome.token):
            return self.snapshot()

        if not outcome.ok or outcome.result is None:
            # Previously displayed rows stay visible under the error banner.
            self._loading = False
            self._error = outcome.error
            return self.snapshot()

        result = outcome.result
        self._result = result
        clamped = reconcile_page(self._page, result.total, self._page_size)
        if clamped != self._page:
            self._page = clamped
        if result.page != self._page:
            # The rows were sliced for a page that no longer exists.
            print(f"[UserGrid] page clamped to {self._page}/{self.total_pages}, re-fetching")
            return await self._schedule_refresh()

        self._loading = False
        if self._selected_id is not None and self._selected() is None:
            self._selected_id = None
        return self.snapshot()

    def load(self) -> asyncio.Task[GridSnapshot]:
        """Fetch the current page with the current state."""
        return self._schedule_refresh()

    async def refresh(self) -> GridSnapshot:
        """Explicit user retry: re-run the fetch for the current state."""
        return await self._schedule_refresh()

    async def wait_idle(self) -> GridSnapshot:
        """Wait until no debounce is pending and the latest fetch has applied."""
        while True:
            if self._debouncer.pending:
                await self._debouncer.wait()
                continue
            task = self._task
            if task is not None and not task.done():
                await asyncio.wait({task})
                continue
            return self.snapshot()

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Drop pending input, stop outstanding fetches and close the client."""
        self._closed = True
        self._debouncer.cancel()
        self._coordinator.cancel()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self._coordinator.aclose()

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def set_filter(self, key: str, value: str) -> None:
        """Record typed filter text; the query updates after the debounce."""
        if key not in self._filter_inputs:
            raise KeyError(key)
        self._filter_inputs[key] = "" if value is None else str(value)
        self._debouncer.push(dict(self._filter_inputs))

    def _apply_filters(self, filters: dict[str, str]) -> None:
        if filters == self._filters:
            return
        self._filters = {key: filters.get(key, "") for key in FILTER_KEYS}
        self._page = 1
        self._schedule_refresh()

    def reset_filters(self) -> asyncio.Task[GridSnapshot]:
        """Clear every filter at once, bypassing the debounce."""
        self._debouncer.cancel()
        self._filter_inputs = empty_filters()
        self._filters = empty_filters()
        self._page = 1
        return self._schedule_refresh()

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    def toggle_sort(self, column_key: str) -> asyncio.Task[GridSnapshot]:
        """Advance the sort cycle for the column's sort key and go to page 1."""
        sort_key = column_by_key(column_key).sort_key if column_key in FILTER_KEYS else column_key
        self._sort = self._sort.cycle(sort_key)
        self._page = 1
        return self._schedule_refresh()

    def sort_indicator(self, column_key: str) -> str:
        """``"↑"``, ``"↓"`` or ``"—"`` for the header of *column_key*."""
        sort_key = column_by_key(column_key).sort_key
        if self._sort.key != sort_key:
            return "—"
        return "↑" if self._sort.order == "asc" else "↓"

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def set_page(self, page: int) -> asyncio.Task[GridSnapshot] | None:
        """Go to *page*, clamped to the valid range.  No-op if unchanged."""
        target = reconcile_page(int(page), self._result.total, self._page_size)
        if target == self._page:
            return None
        self._page = target
        return self._schedule_refresh()

    def first_page(self) -> asyncio.Task[GridSnapshot] | None:
        return self.set_page(1)

    def prev_page(self) -> asyncio.Task[GridSnapshot] | None:
        return self.set_page(self._page - 1)

    def next_page(self) -> asyncio.Task[GridSnapshot] | None:
        return self.set_page(self._page + 1)

    def last_page(self) -> asyncio.Task[GridSnapshot] | None:
        return self.set_page(self.total_pages)

    def set_page_size(self, page_size: int) -> asyncio.Task[GridSnapshot]:
        """Switch page size and clamp the page against the known total."""
        page_size = int(page_size)
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page size must be one of {PAGE_SIZES}, got {page_size}")
        self._page_size = page_size
        self._page = reconcile_page(self._page, self._result.total, page_size)
        return self._schedule_refresh()

    # ------------------------------------------------------------------
    # Column widths
    # ------------------------------------------------------------------

    def begin_resize(self, key: str, pointer_x: float) -> None:
        self._widths.begin_resize(key, pointer_x)

    def move_resize(self, pointer_x: float) -> int | None:
        return self._widths.move_resize(pointer_x)

    def end_resize(self) -> None:
        self._widths.end_resize()

    @property
    def resizing(self) -> bool:
        return self._widths.dragging

    # ------------------------------------------------------------------
    # Detail view
    # ------------------------------------------------------------------

    def select_record(self, record_id: Any) -> dict[str, Any] | None:
        """Open the detail view for the visible record with *record_id*."""
        self._selected_id = str(record_id)
        selected = self._selected()
        if selected is None:
            self._selected_id = None
        return selected

    def clear_selection(self) -> None:
        self._selected_id = None

    def filter_values(self) -> Mapping[str, str]:
        """The filters the current query was built from (post-debounce)."""
        return dict(self._filters)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_DEFAULT_MAX_CONTROLLERS: int = 256


class ControllerRegistry:
    """Least-recently-used map of live controllers, one per browser session.

    Reflex keeps no hook for a closed tab, so the registry is bounded
    instead: once it holds more than *max_size* controllers the least
    recently used one is evicted and closed on the running loop.
    """

    def __init__(self, max_size: int = _DEFAULT_MAX_CONTROLLERS) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self._controllers: OrderedDict[str, GridController] = OrderedDict()
        self._closing: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._controllers)

    def __contains__(self, key: object) -> bool:
        return key in self._controllers

    def get_or_create(self, key: str, factory: Callable[[], GridController]) -> GridController:
        """Return the controller under *key*, building it with *factory* if absent."""
        controller = self._controllers.get(key)
        if controller is not None and not controller.closed:
            self._controllers.move_to_end(key)
            return controller

        controller = factory()
        self._controllers[key] = controller
        self._controllers.move_to_end(key)
        self._evict_if_needed()
        return controller

    def _evict_if_needed(self) -> None:
        while len(self._controllers) > self.max_size:
            evicted_key, evicted = self._controllers.popitem(last=False)
            print(f"[UserGrid] evicting controller {evicted_key}")
            task = asyncio.get_running_loop().create_task(evicted.aclose())
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def wait_closed(self) -> None:
        """Wait until every evicted controller has finished closing."""
        while self._closing:
            await asyncio.gather(*self._closing)

    async def aclose(self) -> None:
        """Close every registered controller and empty the registry."""
        controllers = list(self._controllers.values())
        self._controllers.clear()
        for controller in controllers:
            await controller.aclose()
        await self.wait_closed()
