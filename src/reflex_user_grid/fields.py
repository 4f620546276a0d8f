"""Field access on raw user records.

Every accessor here degrades to an empty string (or the ``—`` placeholder
for derived name fields) instead of raising, so a partial record never
breaks filtering, sorting, or rendering.
"""

from collections.abc import Mapping
from typing import Any

PLACEHOLDER: str = "—"

# Logical key -> key inside the nested ``address`` mapping.
ADDRESS_KEYS: dict[str, str] = {
    "country": "country",
    "city": "city",
    "state": "state",
    "postalCode": "postalCode",
    "street": "address",
}

# The patronymic-equivalent lives in one of two alternate source fields.
PATRONYMIC_SOURCES: tuple[str, ...] = ("maidenName", "middleName")

# ---------------------------------------------------------------------------
# Gender canonicalization
# ---------------------------------------------------------------------------

GENDER_SYNONYMS: dict[str, tuple[str, ...]] = {
    "male": ("m", "male", "man", "м", "муж", "мужской", "мужчина"),
    "female": ("f", "female", "woman", "ж", "жен", "женский", "женщина"),
}

GENDER_LOOKUP: dict[str, str] = {
    synonym: canonical
    for canonical, synonyms in GENDER_SYNONYMS.items()
    for synonym in synonyms
}

GENDER_ORDER: dict[str, int] = {"male": 1, "female": 2}

_GENDER_SHORT: dict[str, str] = {"male": "M", "female": "F"}
_GENDER_LONG: dict[str, str] = {"male": "Male", "female": "Female"}


def canonical_gender(value: Any) -> str:
    """Map a gender spelling to ``"male"`` / ``"female"``.

    Accepts single-letter abbreviations plus English and Russian words in
    any case.  Anything else comes back trimmed and lower-cased so that an
    unknown spelling still compares equal to itself.

    Examples:
        ``"М"`` -> ``"male"``
        ``" female "`` -> ``"female"``
        ``"x"`` -> ``"x"``
    """
    normalized = str(value if value is not None else "").strip().lower()
    return GENDER_LOOKUP.get(normalized, normalized)


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    return "" if value is None else str(value)


def patronymic(record: Mapping[str, Any] | None, placeholder: str = PLACEHOLDER) -> str:
    """Return the first non-blank patronymic source field, else *placeholder*."""
    if not isinstance(record, Mapping):
        return placeholder
    for source in PATRONYMIC_SOURCES:
        value = _text(record.get(source)).strip()
        if value:
            return value
    return placeholder


def full_name(record: Mapping[str, Any] | None) -> str:
    """Family name, given name and patronymic, trimmed and space-joined."""
    if not isinstance(record, Mapping):
        return ""
    parts = (
        _text(record.get("lastName")).strip(),
        _text(record.get("firstName")).strip(),
        patronymic(record, placeholder=""),
    )
    return " ".join(p for p in parts if p)


def get_field_value(record: Mapping[str, Any] | None, key: str) -> str:
    """Resolve a logical column *key* to a string value on *record*."""
    if not isinstance(record, Mapping):
        return ""
    if key in ADDRESS_KEYS:
        address = record.get("address")
        if not isinstance(address, Mapping):
            return ""
        return _text(address.get(ADDRESS_KEYS[key]))
    if key == "patronymic":
        return patronymic(record)
    if key == "fio":
        return full_name(record)
    return _text(record.get(key))


def display_row(record: Mapping[str, Any], keys: tuple[str, ...]) -> dict[str, str]:
    """Flatten *record* into ``{key: display string}`` for the view.

    The record ``id`` is always carried under ``"id"`` so the view can
    report row clicks back.
    """
    row = {key: get_field_value(record, key) for key in keys}
    if "gender" in row:
        canonical = canonical_gender(row["gender"])
        row["gender"] = _GENDER_SHORT.get(canonical, row["gender"])
    row["id"] = get_field_value(record, "id")
    return row


def record_details(record: Mapping[str, Any]) -> dict[str, str]:
    """Build the labelled lines shown in the single-record detail modal."""

    def or_dash(key: str) -> str:
        return get_field_value(record, key).strip() or PLACEHOLDER

    gender = _GENDER_LONG.get(canonical_gender(record.get("gender")), PLACEHOLDER)
    return {
        "name": full_name(record) or PLACEHOLDER,
        "badge": f"{gender}, {or_dash('age')} years",
        "phone": or_dash("phone"),
        "email": or_dash("email"),
        "body": f"{or_dash('height')} cm · {or_dash('weight')} kg",
        "street": or_dash("street"),
        "locality": f"{or_dash('city')}, {or_dash('state')}",
        "region": f"{or_dash('country')}, {or_dash('postalCode')}",
        "image": get_field_value(record, "image"),
    }
