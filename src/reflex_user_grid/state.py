"""Reflex state mixin exposing a :class:`GridController` to the browser.

``UserGridMixin`` is a Reflex **state mixin** (``mixin=True``).  Each
subclass gets its own independent set of ``ug_*`` reactive variables, so
several grids can live on one page.

Controllers hold asyncio handles and an ``httpx.AsyncClient``, none of
which can be serialised into ``rx.State``.  They live in a bounded
module-level registry keyed by full state name and client token instead,
and every controller for the same endpoint shares one HTTP client.

Typical usage::

    from reflex_user_grid import UserGridMixin, user_grid

    class UsersState(UserGridMixin, rx.State):
        _ug_endpoint: str = "https://dummyjson.com/users"

    def index():
        return user_grid(UsersState)

    app.add_page(index, on_load=UsersState.ug_load)
"""

from pathlib import Path
from typing import Any

import httpx
import reflex as rx

from reflex_user_grid.controller import ControllerRegistry, GridController
from reflex_user_grid.coordinator import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT, RequestCoordinator
from reflex_user_grid.fields import display_row, record_details
from reflex_user_grid.models import COLUMNS, FILTER_KEYS, GridSnapshot, empty_filters
from reflex_user_grid.widths import ColumnWidthStore, JsonFileStorage

_controller_registry = ControllerRegistry()
_http_clients: dict[str, httpx.AsyncClient] = {}


def _shared_client(endpoint: str) -> httpx.AsyncClient:
    client = _http_clients.get(endpoint)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        _http_clients[endpoint] = client
    return client


def _px(widths: dict[str, int]) -> dict[str, str]:
    return {key: f"{width}px" for key, width in widths.items()}


class UserGridMixin(rx.State, mixin=True):
    """Reflex State mixin for the user grid.

    Configuration lives in backend vars that subclasses override:

    * ``_ug_endpoint`` -- base URL of the user list endpoint.
    * ``_ug_page_size`` -- initial page size.
    * ``_ug_filter_mode`` -- ``"local"`` or ``"remote"``.
    * ``_ug_widths_path`` -- JSON file to persist column widths in
      (empty string keeps widths in memory only).
    """

    # -- Frontend state vars --
    ug_rows: list[dict[str, str]] = []
    ug_total: int = 0
    ug_page: int = 1
    ug_total_pages: int = 1
    ug_page_size: int = 10
    ug_can_prev: bool = False
    ug_can_next: bool = False
    ug_sort_icons: dict[str, str] = {c.key: "—" for c in COLUMNS}
    ug_filters: dict[str, str] = empty_filters()
    ug_widths: dict[str, str] = _px({c.key: c.width for c in COLUMNS})
    ug_resizing: bool = False
    ug_loading: bool = False
    ug_error: str = ""
    ug_detail: dict[str, str] = {}
    ug_detail_open: bool = False

    # -- Backend-only vars (configuration) --
    _ug_endpoint: str = DEFAULT_ENDPOINT
    _ug_page_size: int = 10
    _ug_filter_mode: str = "local"
    _ug_widths_path: str = ""

    # ------------------------------------------------------------------
    # Controller plumbing
    # ------------------------------------------------------------------

    @classmethod
    def _ug_registry_key(cls, client_token: str) -> str:
        # The full name includes the module, so same-named states in
        # different pages get different controllers.
        return f"{cls.get_full_name()}:{client_token}"

    def _ug_controller(self) -> GridController:
        """Return (or create) the controller for this state and client."""
        registry_key = self._ug_registry_key(self.router.session.client_token)

        def build() -> GridController:
            storage = JsonFileStorage(Path(self._ug_widths_path)) if self._ug_widths_path else None
            return GridController(
                RequestCoordinator(
                    _shared_client(self._ug_endpoint),
                    endpoint=self._ug_endpoint,
                    filter_mode=self._ug_filter_mode,  # type: ignore[arg-type]
                ),
                page_size=self._ug_page_size,
                widths=ColumnWidthStore(storage=storage),
            )

        return _controller_registry.get_or_create(registry_key, build)

    def _ug_sync(self, controller: GridController, snapshot: GridSnapshot) -> None:
        """Copy a controller snapshot into the reactive vars."""
        self.ug_rows = [display_row(r, FILTER_KEYS) for r in snapshot.rows]  # type: ignore[assignment]
        self.ug_total = snapshot.total  # type: ignore[assignment]
        self.ug_page = snapshot.page  # type: ignore[assignment]
        self.ug_total_pages = snapshot.total_pages  # type: ignore[assignment]
        self.ug_page_size = snapshot.page_size  # type: ignore[assignment]
        self.ug_can_prev = snapshot.can_prev  # type: ignore[assignment]
        self.ug_can_next = snapshot.can_next  # type: ignore[assignment]
        self.ug_sort_icons = {c.key: controller.sort_indicator(c.key) for c in COLUMNS}  # type: ignore[assignment]
        self.ug_filters = snapshot.filters  # type: ignore[assignment]
        self.ug_widths = _px(snapshot.column_widths)  # type: ignore[assignment]
        self.ug_resizing = controller.resizing  # type: ignore[assignment]
        self.ug_loading = snapshot.loading  # type: ignore[assignment]
        self.ug_error = snapshot.error  # type: ignore[assignment]
        if snapshot.selected is not None:
            self.ug_detail = record_details(snapshot.selected)  # type: ignore[assignment]
            self.ug_detail_open = True  # type: ignore[assignment]
        else:
            self.ug_detail = {}  # type: ignore[assignment]
            self.ug_detail_open = False  # type: ignore[assignment]

    async def _ug_settle(self, controller: GridController) -> None:
        """Wait for debounce and fetch to finish, then push the final state."""
        snapshot = await controller.wait_idle()
        async with self:
            self._ug_sync(controller, snapshot)

    # ------------------------------------------------------------------
    # Event handlers (fetching)
    # ------------------------------------------------------------------

    @rx.event(background=True)
    async def ug_load(self):
        """Initial fetch; wire this to the page's ``on_load``."""
        async with self:
            controller = self._ug_controller()
            controller.load()
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    @rx.event(background=True)
    async def ug_refresh(self):
        """Re-run the fetch for the current state (explicit retry)."""
        async with self:
            controller = self._ug_controller()
            controller.load()
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    @rx.event(background=True)
    async def ug_set_filter(self, key: str, value: str):
        """Filter input changed -- debounced inside the controller."""
        async with self:
            controller = self._ug_controller()
            controller.set_filter(key, value)
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    @rx.event(background=True)
    async def ug_reset_filters(self):
        async with self:
            controller = self._ug_controller()
            controller.reset_filters()
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    @rx.event(background=True)
    async def ug_toggle_sort(self, column_key: str):
        async with self:
            controller = self._ug_controller()
            controller.toggle_sort(column_key)
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    @rx.event(background=True)
    async def ug_go_to(self, target: str):
        """Pagination button: ``"first"``, ``"prev"``, ``"next"`` or ``"last"``."""
        async with self:
            controller = self._ug_controller()
            moves = {
                "first": controller.first_page,
                "prev": controller.prev_page,
                "next": controller.next_page,
                "last": controller.last_page,
            }
            moves[target]()
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    @rx.event(background=True)
    async def ug_set_page_size(self, value: str):
        async with self:
            controller = self._ug_controller()
            controller.set_page_size(int(value))
            self._ug_sync(controller, controller.snapshot())
        await self._ug_settle(controller)

    # ------------------------------------------------------------------
    # Event handlers (column resize, detail view)
    # ------------------------------------------------------------------

    def ug_begin_resize(self, key: str, pointer_x: float) -> None:
        controller = self._ug_controller()
        controller.begin_resize(key, float(pointer_x))
        self.ug_resizing = True  # type: ignore[assignment]

    def ug_move_resize(self, pointer_x: float) -> None:
        controller = self._ug_controller()
        if controller.move_resize(float(pointer_x)) is not None:
            self.ug_widths = _px(controller.snapshot().column_widths)  # type: ignore[assignment]

    def ug_end_resize(self, _pointer_x: Any = None) -> None:
        controller = self._ug_controller()
        controller.end_resize()
        self.ug_resizing = False  # type: ignore[assignment]

    def ug_select_row(self, record_id: str) -> None:
        """Row click -- open the detail modal for that record."""
        controller = self._ug_controller()
        selected = controller.select_record(record_id)
        if selected is None:
            return
        self.ug_detail = record_details(selected)  # type: ignore[assignment]
        self.ug_detail_open = True  # type: ignore[assignment]

    def ug_set_detail_open(self, is_open: bool) -> None:
        if is_open:
            return
        self._ug_controller().clear_selection()
        self.ug_detail = {}  # type: ignore[assignment]
        self.ug_detail_open = False  # type: ignore[assignment]
