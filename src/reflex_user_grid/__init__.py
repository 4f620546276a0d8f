"""reflex-user-grid – interactive browser for a remote, paginated user list.

The grid engine (sort/filter/page/width state, debounced filtering,
last-request-wins fetching, page reconciliation) is plain asyncio code and
can be driven headlessly::

    from reflex_user_grid import GridController, RequestCoordinator

    controller = GridController(RequestCoordinator())
    await controller.load()

The Reflex layer binds that engine to a page::

    class UsersState(UserGridMixin, rx.State):
        pass

    app.add_page(lambda: user_grid(UsersState), on_load=UsersState.ug_load)
"""

from reflex_user_grid.controller import ControllerRegistry, GridController
from reflex_user_grid.coordinator import (
    DEFAULT_ENDPOINT,
    FetchOutcome,
    RequestCoordinator,
    RequestToken,
    UserGridFetchError,
    plan_request,
)
from reflex_user_grid.debounce import Debouncer
from reflex_user_grid.fields import (
    canonical_gender,
    display_row,
    full_name,
    get_field_value,
    patronymic,
    record_details,
)
from reflex_user_grid.models import (
    COLUMNS,
    FILTER_KEYS,
    PAGE_SIZES,
    Column,
    GridQuery,
    GridSnapshot,
    ResultSet,
    SortState,
)
from reflex_user_grid.paging import reconcile_page, total_pages
from reflex_user_grid.query import collation_key, compare, filter_frame, matches, sort_frame
from reflex_user_grid.records import normalize_payload, payload_frame, records_frame
from reflex_user_grid.state import UserGridMixin
from reflex_user_grid.view import user_grid, user_grid_detail, user_grid_pagination, user_grid_toolbar
from reflex_user_grid.widths import ColumnWidthStore, JsonFileStorage, MemoryStorage
