"""Normalization of raw user payloads through a fixed polars schema."""

from collections.abc import Mapping
from typing import Any

import polars as pl

ADDRESS_FIELDS: tuple[str, ...] = ("address", "city", "state", "postalCode", "country")

_TEXT_FIELDS: list[str] = [
    "firstName",
    "lastName",
    "maidenName",
    "middleName",
    "gender",
    "email",
    "phone",
    "username",
    "birthDate",
    "image",
]
_INT_FIELDS: list[str] = ["id", "age"]
_FLOAT_FIELDS: list[str] = ["height", "weight"]

USER_SCHEMA: pl.Schema = pl.Schema(
    {
        "id": pl.Int64,
        **{name: pl.String for name in _TEXT_FIELDS},
        "age": pl.Int64,
        "height": pl.Float64,
        "weight": pl.Float64,
        "address": pl.Struct({name: pl.String for name in ADDRESS_FIELDS}),
    }
)


def _clean_entry(entry: Mapping[str, Any]) -> dict[str, Any]:
    """Project *entry* onto the schema's keys so polars never sees stray shapes."""
    cleaned = {name: entry.get(name) for name in USER_SCHEMA.names() if name != "address"}
    address = entry.get("address")
    if isinstance(address, Mapping):
        cleaned["address"] = {name: address.get(name) for name in ADDRESS_FIELDS}
    else:
        cleaned["address"] = None
    return cleaned


def records_frame(users: list[Any]) -> pl.DataFrame:
    """Load raw user dicts into a DataFrame with every optional field defaulted.

    * Entries that are not mappings are skipped.
    * Fields outside :data:`USER_SCHEMA` are dropped.
    * Missing or uncastable text -> ``""``, integers -> ``0``,
      floats -> ``0.0``.
    * ``address`` is always a struct with all of :data:`ADDRESS_FIELDS`
      populated (``""`` when absent).
    """
    cleaned = [_clean_entry(entry) for entry in users if isinstance(entry, Mapping)]
    frame = pl.from_dicts(cleaned, schema=USER_SCHEMA, strict=False)

    address = pl.col("address")
    return frame.with_columns(
        pl.col(_TEXT_FIELDS).fill_null(""),
        pl.col(_INT_FIELDS).fill_null(0),
        pl.col(_FLOAT_FIELDS).fill_null(0.0),
        pl.struct(
            [address.struct.field(name).fill_null("").alias(name) for name in ADDRESS_FIELDS]
        ).alias("address"),
    )


def payload_frame(payload: Any) -> tuple[pl.DataFrame, int | None]:
    """Turn a list-endpoint response into ``(frame, reported_total)``.

    Accepts ``{"users": [...], "total": n}`` or a bare list.
    ``reported_total`` is ``None`` when the payload carries no usable
    ``total`` (always the case for a bare list), so callers can tell a
    complete collection from one page of an unknown-sized one.
    """
    if isinstance(payload, list):
        users: Any = payload
        total: Any = None
    elif isinstance(payload, Mapping):
        users = payload.get("users")
        total = payload.get("total")
    else:
        users, total = [], None

    if not isinstance(users, list):
        users = []
    if isinstance(total, bool) or not isinstance(total, int) or total < 0:
        total = None
    return records_frame(users), total


def normalize_payload(payload: Any) -> tuple[list[dict[str, Any]], int]:
    """Like :func:`payload_frame`, but as plain dicts with the total defaulted.

    When the payload carries no usable ``total`` the record count is used.
    """
    frame, total = payload_frame(payload)
    return frame.to_dicts(), frame.height if total is None else total
