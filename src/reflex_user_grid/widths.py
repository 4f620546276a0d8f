"""Column widths: drag-to-resize gestures and optional persistence."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import NamedTuple, Protocol

from reflex_user_grid.models import DEFAULT_WIDTHS, FALLBACK_COLUMN_WIDTH, MIN_COLUMN_WIDTH

STORAGE_KEY: str = "user_grid.column_widths"


# ---------------------------------------------------------------------------
# Persistence collaborators
# ---------------------------------------------------------------------------

class WidthStorage(Protocol):
    """A key -> JSON string store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """In-process storage; survives only as long as the object does."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFileStorage:
    """Storage backed by one JSON object file on disk.

    The file is read lazily on first access and rewritten on every
    :meth:`set`.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._data is None:
            self._data = {}
            if self.path.exists():
                try:
                    raw = json.loads(self.path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as exc:
                    print(f"[UserGrid] ignoring unreadable width file {self.path}: {exc}")
                    raw = {}
                if isinstance(raw, dict):
                    self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        return self._data

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


# ---------------------------------------------------------------------------
# Width store
# ---------------------------------------------------------------------------

class _Gesture(NamedTuple):
    key: str
    start_x: float
    start_width: int


class ColumnWidthStore:
    """Per-column pixel widths mutated by drag gestures.

    A gesture is a two-state machine: idle -> dragging (on
    :meth:`begin_resize`) -> idle (on :meth:`end_resize`).  While dragging,
    each :meth:`move_resize` sets ``max(50, start_width + (x - start_x))``.

    When a *storage* is given, widths are read from it once here and
    written back after every change.
    """

    def __init__(
        self,
        defaults: Mapping[str, int] | None = None,
        storage: WidthStorage | None = None,
        storage_key: str = STORAGE_KEY,
    ) -> None:
        self._defaults = dict(DEFAULT_WIDTHS if defaults is None else defaults)
        self._widths = dict(self._defaults)
        self._storage = storage
        self._storage_key = storage_key
        self._gesture: _Gesture | None = None
        if storage is not None:
            self._restore(storage.get(storage_key))

    def _restore(self, snapshot: str | None) -> None:
        if not snapshot:
            return
        try:
            saved = json.loads(snapshot)
        except ValueError as exc:
            print(f"[UserGrid] ignoring invalid column width snapshot: {exc}")
            return
        if not isinstance(saved, dict):
            return
        for key, width in saved.items():
            if isinstance(width, bool) or not isinstance(width, (int, float)):
                continue
            self._widths[str(key)] = max(MIN_COLUMN_WIDTH, int(width))

    def _persist(self) -> None:
        if self._storage is not None:
            self._storage.set(self._storage_key, json.dumps(self._widths))

    @property
    def widths(self) -> dict[str, int]:
        return dict(self._widths)

    @property
    def dragging(self) -> bool:
        return self._gesture is not None

    @property
    def dragging_key(self) -> str | None:
        return self._gesture.key if self._gesture else None

    def width(self, key: str) -> int:
        return self._widths.get(key) or self._defaults.get(key) or FALLBACK_COLUMN_WIDTH

    def set_width(self, key: str, width: float) -> int:
        """Set *key* to *width*, clamped to the floor, and persist."""
        new_width = max(MIN_COLUMN_WIDTH, int(round(width)))
        if self._widths.get(key) != new_width:
            self._widths[key] = new_width
            self._persist()
        return new_width

    def resize(self, key: str, delta_x: float) -> int:
        """One-shot resize of *key* by *delta_x* pixels from its current width."""
        return self.set_width(key, self.width(key) + delta_x)

    def begin_resize(self, key: str, pointer_x: float) -> None:
        """Capture the starting pointer X and the column's current width."""
        self._gesture = _Gesture(key, pointer_x, self.width(key))

    def move_resize(self, pointer_x: float) -> int | None:
        """Apply the live width for the pointer at *pointer_x*.

        Returns the new width, or ``None`` when no gesture is in progress.
        """
        gesture = self._gesture
        if gesture is None:
            return None
        return self.set_width(gesture.key, gesture.start_width + (pointer_x - gesture.start_x))

    def end_resize(self) -> None:
        self._gesture = None

    def reset(self) -> None:
        """Restore the default widths (keys are kept, never removed)."""
        self._gesture = None
        self._widths.update(self._defaults)
        self._persist()
