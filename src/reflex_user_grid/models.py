"""Column declarations and the explicit state structs of the user grid."""

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

SortOrder = Literal["asc", "desc"]
FilterMode = Literal["local", "remote"]

PAGE_SIZES: tuple[int, ...] = (5, 10, 20, 50)
MIN_COLUMN_WIDTH: int = 50
FALLBACK_COLUMN_WIDTH: int = 120


@dataclass(frozen=True)
class Column:
    """One declared grid column.

    Attributes:
        key: Logical column key (also the filter key).
        label: Human-readable header text.
        sort_key: Key passed to the sort comparator when the header is
            clicked.  The three name columns share the composite ``"fio"``.
        width: Default width in pixels.
        numeric: Whether the column holds numbers (right-aligned).
    """

    key: str
    label: str
    sort_key: str
    width: int
    numeric: bool = False


COLUMNS: tuple[Column, ...] = (
    Column("lastName", "Last name", "fio", 150),
    Column("firstName", "First name", "fio", 140),
    Column("patronymic", "Patronymic", "fio", 160),
    Column("age", "Age", "age", 90, numeric=True),
    Column("gender", "Gender", "gender", 100),
    Column("phone", "Phone", "phone", 180),
    Column("email", "Email", "email", 240),
    Column("country", "Country", "country", 160),
    Column("city", "City", "city", 160),
)

FILTER_KEYS: tuple[str, ...] = tuple(c.key for c in COLUMNS)
SORT_KEYS: tuple[str, ...] = tuple(dict.fromkeys(c.sort_key for c in COLUMNS))
DEFAULT_WIDTHS: dict[str, int] = {c.key: c.width for c in COLUMNS}


def column_by_key(key: str) -> Column:
    """Return the declared column for *key* (``KeyError`` if unknown)."""
    for column in COLUMNS:
        if column.key == key:
            return column
    raise KeyError(key)


def empty_filters() -> dict[str, str]:
    """Return a FilterState with every declared key present and empty."""
    return {key: "" for key in FILTER_KEYS}


@dataclass(frozen=True)
class SortState:
    """Current sort: both fields are ``None`` or both are set."""

    key: str | None = None
    order: SortOrder | None = None

    def __post_init__(self) -> None:
        if (self.key is None) != (self.order is None):
            raise ValueError(f"inconsistent sort state: key={self.key!r}, order={self.order!r}")
        if self.order not in (None, "asc", "desc"):
            raise ValueError(f"unknown sort order: {self.order!r}")

    @property
    def active(self) -> bool:
        return self.key is not None

    def cycle(self, key: str) -> "SortState":
        """Advance the none -> asc -> desc -> none cycle for *key*.

        Clicking a different key always starts over at ``asc``.
        """
        if self.key != key:
            return SortState(key, "asc")
        if self.order == "asc":
            return SortState(key, "desc")
        return SortState()


@dataclass(frozen=True)
class GridQuery:
    """Derived state a fetch is built from.

    Two equal queries always yield the same :class:`ResultSet` (up to
    ordering ties), which is what makes a repeated fetch idempotent.
    """

    page: int = 1
    page_size: int = 10
    sort: SortState = field(default_factory=SortState)
    filters: tuple[tuple[str, str], ...] = ()

    @property
    def filter_map(self) -> dict[str, str]:
        return dict(self.filters)


@dataclass(frozen=True)
class ResultSet:
    """One page of rows plus the pre-pagination match count.

    ``page`` is the page number the rows were actually sliced for; a local
    pass clamps it, a remote pass echoes the requested page.
    """

    rows: tuple[dict[str, Any], ...] = ()
    total: int = 0
    page: int = 1


@dataclass(frozen=True)
class GridSnapshot:
    """Everything the view needs to render one frame of the grid."""

    rows: tuple[dict[str, Any], ...]
    total: int
    page: int
    page_size: int
    total_pages: int
    sort: SortState
    filters: dict[str, str]
    column_widths: dict[str, int]
    loading: bool
    error: str
    selected: dict[str, Any] | None
    can_prev: bool
    can_next: bool

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
