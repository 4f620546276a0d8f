"""Client-side filtering and sorting of user records.

This is the local counterpart of what the remote list endpoint does when
it can.  The coordinator works on the normalized polars frame:
:func:`filter_frame` narrows it with per-field match expressions ANDed
together, :func:`sort_frame` orders it stably, and
:mod:`reflex_user_grid.paging` slices the page out of the result.

:func:`matches` and :func:`compare` state the same rules for a single
record (or pair of records) and are what the frame expressions must agree
with.
"""

import unicodedata
from collections.abc import Mapping
from typing import Any

import polars as pl

from reflex_user_grid.fields import (
    ADDRESS_KEYS,
    GENDER_LOOKUP,
    GENDER_ORDER,
    PATRONYMIC_SOURCES,
    PLACEHOLDER,
    canonical_gender,
    full_name,
    get_field_value,
)
from reflex_user_grid.models import SortState

CATEGORICAL_KEYS: frozenset[str] = frozenset({"gender"})
NUMERIC_KEYS: frozenset[str] = frozenset({"age"})

# NFKD splits these into base letter + breve, but in Russian they are
# letters of their own, sorted after и/И.
_RECOMPOSE: dict[str, str] = {"\u0438\u0306": "\u0439", "\u0418\u0306": "\u0419"}


# ---------------------------------------------------------------------------
# Filter Matcher
# ---------------------------------------------------------------------------

def active_filters(filters: Mapping[str, str]) -> dict[str, str]:
    """Return only the filter entries with a non-blank query, normalized.

    Queries are trimmed and lower-cased once here so the matchers do not
    redo it for every record.
    """
    normalized: dict[str, str] = {}
    for key, value in filters.items():
        query = str(value if value is not None else "").strip().lower()
        if query:
            normalized[key] = query
    return normalized


def filters_active(filters: Mapping[str, str]) -> bool:
    return bool(active_filters(filters))


def _field_matches(record: Mapping[str, Any], key: str, query: str) -> bool:
    value = get_field_value(record, key)
    if key in CATEGORICAL_KEYS:
        return canonical_gender(value) == canonical_gender(query)
    return query in value.lower()


def matches(record: Mapping[str, Any], filters: Mapping[str, str]) -> bool:
    """Decide whether *record* satisfies every non-empty filter.

    * ``gender`` needs an exact match after both sides go through
      :func:`~reflex_user_grid.fields.canonical_gender`, so ``"м"``,
      ``"m"`` and ``"male"`` all select male records.
    * Every other key is a case-insensitive substring test.

    Empty filters impose no constraint.
    """
    return all(
        _field_matches(record, key, query)
        for key, query in active_filters(filters).items()
    )


# ---------------------------------------------------------------------------
# Field expressions
# ---------------------------------------------------------------------------

def _text(name: str) -> pl.Expr:
    return pl.col(name).cast(pl.String).fill_null("")


def patronymic_expr(placeholder: str = PLACEHOLDER) -> pl.Expr:
    """First non-blank patronymic source column, else *placeholder*."""
    first, *rest = (_text(source).str.strip_chars() for source in PATRONYMIC_SOURCES)
    chain = pl.when(first != "").then(first)
    for source in rest:
        chain = chain.when(source != "").then(source)
    return chain.otherwise(pl.lit(placeholder))


def full_name_expr() -> pl.Expr:
    parts = pl.concat_list(
        _text("lastName").str.strip_chars(),
        _text("firstName").str.strip_chars(),
        patronymic_expr(placeholder=""),
    )
    return parts.list.eval(pl.element().filter(pl.element() != "")).list.join(" ")


def field_expr(key: str) -> pl.Expr:
    """String expression for logical column *key* on a normalized frame."""
    if key in ADDRESS_KEYS:
        return pl.col("address").struct.field(ADDRESS_KEYS[key]).cast(pl.String).fill_null("")
    if key == "patronymic":
        return patronymic_expr()
    if key == "fio":
        return full_name_expr()
    return _text(key)


def canonical_gender_expr() -> pl.Expr:
    return _text("gender").str.strip_chars().str.to_lowercase().replace(GENDER_LOOKUP)


def _filter_expr(key: str, query: str) -> pl.Expr:
    if key in CATEGORICAL_KEYS:
        return canonical_gender_expr() == canonical_gender(query)
    return field_expr(key).str.to_lowercase().str.contains(query, literal=True)


def filter_frame(frame: pl.DataFrame, filters: Mapping[str, str]) -> pl.DataFrame:
    """Return the rows of *frame* matching *filters* (all ANDed).

    With no active filter *frame* itself is returned.
    """
    active = active_filters(filters)
    if not active:
        return frame

    exprs = [_filter_expr(key, query) for key, query in active.items()]
    combined = exprs[0]
    for e in exprs[1:]:
        combined = combined & e
    return frame.filter(combined)


# ---------------------------------------------------------------------------
# Sort Comparator
# ---------------------------------------------------------------------------

def _decompose(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    for pair, letter in _RECOMPOSE.items():
        decomposed = decomposed.replace(pair, letter)
    return decomposed


def collation_key(text: str) -> tuple[str, str, str]:
    """Locale-style collation key for *text*.

    Three levels, compared in order:

    1. base letters, lower-cased, with combining marks stripped
       (``"Ёлка"`` and ``"елка"`` tie here, ``"й"`` stays after ``"и"``);
    2. the decomposed, lower-cased text, so accents break ties;
    3. the case-swapped original, so lower case sorts before upper case.

    Unlike byte ordering this keeps ``"apple" < "Banana"`` and
    ``"ёж" < "жук"``.
    """
    decomposed = _decompose(text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.lower(), decomposed.lower(), text.swapcase()


def _collation_exprs(expr: pl.Expr) -> list[tuple[pl.Expr, bool]]:
    # Frame version of collation_key.  Sorting the raw text in the
    # opposite direction stands in for the swapped-case level.
    decomposed = expr.str.normalize("NFKD")
    for pair, letter in _RECOMPOSE.items():
        decomposed = decomposed.str.replace_all(pair, letter, literal=True)
    base = decomposed.str.replace_all(r"\p{Mn}", "")
    return [
        (base.str.to_lowercase(), False),
        (decomposed.str.to_lowercase(), False),
        (expr, True),
    ]


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return 0.0


def _gender_rank(value: Any) -> int:
    return GENDER_ORDER.get(canonical_gender(value), 0)


def sort_value(record: Mapping[str, Any], key: str) -> Any:
    """Return the comparable value of *record* for sort *key*."""
    if key == "fio":
        return collation_key(full_name(record))
    if key in NUMERIC_KEYS:
        return _as_number(record.get(key) if isinstance(record, Mapping) else None)
    if key in CATEGORICAL_KEYS:
        return _gender_rank(get_field_value(record, key))
    return collation_key(get_field_value(record, key))


def compare(a: Mapping[str, Any], b: Mapping[str, Any], sort: SortState) -> int:
    """Three-way compare *a* and *b* under *sort*.

    Returns a negative number, zero, or a positive number.  The direction
    is applied last as a sign multiply, so ``compare(a, b, asc)`` is
    always ``-compare(a, b, desc)``.  An inactive sort compares equal.
    """
    if sort.key is None:
        return 0
    left = sort_value(a, sort.key)
    right = sort_value(b, sort.key)
    result = (left > right) - (left < right)
    return result if sort.order == "asc" else -result


def _sort_exprs(key: str) -> list[tuple[pl.Expr, bool]]:
    if key in NUMERIC_KEYS:
        return [(pl.col(key).cast(pl.Float64, strict=False).fill_null(0.0), False)]
    if key in CATEGORICAL_KEYS:
        rank = canonical_gender_expr().replace_strict(GENDER_ORDER, default=0, return_dtype=pl.Int64)
        return [(rank, False)]
    return _collation_exprs(field_expr(key))


def sort_frame(frame: pl.DataFrame, sort: SortState) -> pl.DataFrame:
    """Return *frame* ordered by *sort*; ties keep their prior order."""
    if sort.key is None:
        return frame
    descending = sort.order == "desc"
    keys = _sort_exprs(sort.key)
    return frame.sort(
        [expr.alias(f"__sort_{i}") for i, (expr, _) in enumerate(keys)],
        descending=[descending != inverted for _, inverted in keys],
        maintain_order=True,
    )
