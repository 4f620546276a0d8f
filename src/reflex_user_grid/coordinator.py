"""Request coordination against the remote paginated user list endpoint.

:class:`RequestCoordinator` turns a :class:`~reflex_user_grid.models.GridQuery`
into one HTTP request, decides whether filtering/sorting/paging can be
delegated to the endpoint or has to happen locally, and guarantees that
only the most recently issued request ever produces a usable outcome.

Cancellation is cooperative: a superseded request keeps running on the
wire, but its :class:`RequestToken` is invalidated and its outcome comes
back with ``status="cancelled"`` so callers drop it.
"""

import time
from dataclasses import dataclass
from typing import Any, Literal

import httpx
import polars as pl

from reflex_user_grid.fields import canonical_gender
from reflex_user_grid.models import FilterMode, GridQuery, ResultSet
from reflex_user_grid.paging import page_offset, page_slice, reconcile_page
from reflex_user_grid.query import active_filters, filter_frame, sort_frame
from reflex_user_grid.records import payload_frame

DEFAULT_ENDPOINT: str = "https://dummyjson.com/users"
FETCH_ERROR_MESSAGE: str = "Could not load users. Check your connection and try again."

DEFAULT_TIMEOUT: float = 10.0
# ``limit=0`` asks the endpoint for the whole collection.
_FETCH_ALL_LIMIT: int = 0

# Sort keys the endpoint can order by itself -> its field name.
REMOTE_SORT_FIELDS: dict[str, str] = {
    "age": "age",
    "phone": "phone",
    "email": "email",
}

# Filter keys -> the endpoint's (dotted) field path in filter mode.
REMOTE_FILTER_PATHS: dict[str, str] = {
    "lastName": "lastName",
    "firstName": "firstName",
    "patronymic": "maidenName",
    "age": "age",
    "gender": "gender",
    "phone": "phone",
    "email": "email",
    "country": "address.country",
    "city": "address.city",
}


class UserGridFetchError(Exception):
    """A request failed: non-2xx status, transport error, or undecodable body."""


class RequestToken:
    """Cancellation handle for one in-flight fetch."""

    _counter: int = 0

    def __init__(self) -> None:
        RequestToken._counter += 1
        self.serial: int = RequestToken._counter
        self.cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "live"
        return f"RequestToken(#{self.serial}, {state})"


@dataclass(frozen=True)
class FetchOutcome:
    """What one :meth:`RequestCoordinator.fetch_page` call produced."""

    token: RequestToken
    status: Literal["ok", "error", "cancelled"]
    result: ResultSet | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"


@dataclass(frozen=True)
class RequestPlan:
    """The URL/params for a query and which steps run client-side."""

    url: str
    params: list[tuple[str, str]]
    local_filter: bool
    local_sort: bool
    local_page: bool


def plan_request(
    query: GridQuery,
    endpoint: str = DEFAULT_ENDPOINT,
    filter_mode: FilterMode = "local",
    fetch_all: bool = False,
) -> RequestPlan:
    """Decide how *query* is split between the endpoint and the client.

    * Local filter mode with any active filter, or a sort key the endpoint
      cannot express (composite name, categorical order, nested fields),
      fetches the whole collection (``limit=0``) and filters, sorts and
      pages locally.
    * *fetch_all* forces the same for an endpoint that reports no totals.
    * Otherwise filtering (remote filter mode only), sorting and paging
      are delegated and the endpoint's ordering and ``total`` are trusted.

    Remote filter mode inherits the filter route's semantics: every value
    is an exact match (``city=Fort Worth`` matches, ``city=fort`` does not),
    unlike the case-insensitive substring match of local mode.
    """
    active = active_filters(query.filter_map)
    sort = query.sort
    local_filter = bool(active) and filter_mode == "local"
    local_sort = sort.active and sort.key not in REMOTE_SORT_FIELDS
    fetch_all = fetch_all or local_filter or local_sort

    url = endpoint.rstrip("/")
    params: list[tuple[str, str]] = []

    if active and filter_mode == "remote":
        url = f"{url}/filter"
        raw = query.filter_map
        for key in active:
            # The filter route matches exactly, so send the value as typed.
            value = str(raw[key]).strip()
            if key == "gender":
                value = canonical_gender(value)
            params.append(("key", REMOTE_FILTER_PATHS.get(key, key)))
            params.append(("value", value))

    if sort.active and not local_sort and sort.key is not None and sort.order is not None:
        params.append(("sortBy", REMOTE_SORT_FIELDS[sort.key]))
        params.append(("order", sort.order))

    if fetch_all:
        params.append(("limit", str(_FETCH_ALL_LIMIT)))
    else:
        params.append(("limit", str(query.page_size)))
        params.append(("skip", str(page_offset(query.page, query.page_size))))

    return RequestPlan(
        url=url,
        params=params,
        local_filter=local_filter,
        local_sort=local_sort,
        local_page=fetch_all,
    )


class RequestCoordinator:
    """Builds, issues and arbitrates fetches against the user list endpoint.

    At most one :class:`RequestToken` is current at a time.  :meth:`begin`
    invalidates the previous token before handing out a new one, and
    :meth:`fetch_page` re-checks its token after every suspension point,
    so results (and errors) apply in last-issued-wins order regardless of
    network completion order.

    Args:
        client: Optional ``httpx.AsyncClient``; one is created (and owned)
            when omitted.
        endpoint: Base URL of the list endpoint.
        filter_mode: ``"local"`` to filter client-side over the whole
            collection (case-insensitive substring match), ``"remote"`` to
            use the endpoint's filter route, which only matches exactly.
        timeout: Request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        filter_mode: FilterMode = "local",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if filter_mode not in ("local", "remote"):
            raise ValueError(f"unknown filter mode: {filter_mode!r}")
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)
        self.endpoint = endpoint
        self.filter_mode: FilterMode = filter_mode
        self._current: RequestToken | None = None
        # Flips off the first time a paged response arrives without a total.
        self._remote_totals: bool = True

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def begin(self) -> RequestToken:
        """Invalidate the in-flight request (if any) and issue a new token."""
        if self._current is not None:
            self._current.cancel()
        self._current = RequestToken()
        return self._current

    def is_current(self, token: RequestToken) -> bool:
        return token is self._current and not token.cancelled

    def cancel(self) -> None:
        """Invalidate the in-flight request without starting another."""
        if self._current is not None:
            self._current.cancel()

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch_page(
        self,
        query: GridQuery,
        token: RequestToken | None = None,
    ) -> FetchOutcome:
        """Fetch the page described by *query*.

        Never raises for transport or HTTP problems: those come back as an
        ``"error"`` outcome carrying a human-readable message.  If *token*
        has been superseded by the time the response arrives, the outcome
        is ``"cancelled"`` and carries neither result nor error.

        An endpoint that answers a paged request with a bare list gives no
        way to know the collection size, so the page is re-requested as the
        whole collection and every later fetch pages locally.
        """
        if token is None:
            token = self.begin()

        t0 = time.perf_counter()
        try:
            plan, frame, remote_total = await self._fetch_frame(query, token)
        except UserGridFetchError as exc:
            if not self.is_current(token):
                return self._discarded(token)
            print(f"[UserGrid] fetch failed: {exc}")
            return FetchOutcome(token, "error", error=FETCH_ERROR_MESSAGE)

        if not self.is_current(token):
            return self._discarded(token)

        fetch_ms = (time.perf_counter() - t0) * 1000

        if not plan.local_page:
            total = frame.height if remote_total is None else remote_total
            result = ResultSet(rows=tuple(frame.to_dicts()), total=total, page=query.page)
            print(
                f"[UserGrid] remote page: page={query.page}, size={query.page_size}, "
                f"rows={frame.height}, total={total}, elapsed={fetch_ms:.1f}ms"
            )
            return FetchOutcome(token, "ok", result=result)

        t_local = time.perf_counter()
        matched = filter_frame(frame, query.filter_map) if plan.local_filter else frame
        ordered = sort_frame(matched, query.sort)
        total = ordered.height
        page = reconcile_page(query.page, total, query.page_size)
        rows = page_slice(ordered, page, query.page_size).to_dicts()
        print(
            f"[UserGrid] local page: fetched={frame.height}, matched={total}, "
            f"page={page}, rows={len(rows)}, fetch={fetch_ms:.1f}ms, "
            f"local={(time.perf_counter() - t_local) * 1000:.1f}ms"
        )
        return FetchOutcome(
            token,
            "ok",
            result=ResultSet(rows=tuple(rows), total=total, page=page),
        )

    async def _fetch_frame(
        self,
        query: GridQuery,
        token: RequestToken,
    ) -> tuple[RequestPlan, pl.DataFrame, int | None]:
        plan = plan_request(
            query, self.endpoint, self.filter_mode, fetch_all=not self._remote_totals
        )
        frame, total = payload_frame(await self._request(plan))
        if plan.local_page or total is not None or not self.is_current(token):
            return plan, frame, total

        print(f"[UserGrid] {self.endpoint} reports no total; paging locally from now on")
        self._remote_totals = False
        plan = plan_request(query, self.endpoint, self.filter_mode, fetch_all=True)
        frame, total = payload_frame(await self._request(plan))
        return plan, frame, total

    async def _request(self, plan: RequestPlan) -> Any:
        try:
            response = await self._client.get(plan.url, params=plan.params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UserGridFetchError(str(exc) or type(exc).__name__) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise UserGridFetchError(f"invalid JSON from {plan.url}") from exc

    def _discarded(self, token: RequestToken) -> FetchOutcome:
        print(f"[UserGrid] discarded superseded response {token!r}")
        return FetchOutcome(token, "cancelled")

    async def aclose(self) -> None:
        self.cancel()
        if self._owns_client:
            await self._client.aclose()
