"""Quiescence debouncer for filter input, driven by the asyncio loop."""

import asyncio
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

_DEFAULT_DELAY: float = 0.3


class Debouncer(Generic[T]):
    """Emit only the last value of a burst, after *delay* seconds of quiet.

    Every :meth:`push` cancels the pending timer and schedules a fresh one
    carrying the new value, so N pushes within the window produce exactly
    one call to *callback*.  Must be used from inside a running event loop.

    Example::

        debouncer = Debouncer(apply_filters, delay=0.3)
        debouncer.push({"city": "M"})
        debouncer.push({"city": "Mo"})   # only this one reaches apply_filters
    """

    def __init__(self, callback: Callable[[T], None], delay: float = _DEFAULT_DELAY) -> None:
        self.callback = callback
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._settled = asyncio.Event()
        self._settled.set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: T) -> None:
        """Restart the quiet window with *value* as the candidate to emit."""
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._settled.clear()
        self._handle = loop.call_later(self.delay, self._fire, value)

    def cancel(self) -> None:
        """Drop the pending value, if any, without emitting it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._settled.set()

    async def wait(self) -> None:
        """Return once nothing is pending (emitted or cancelled)."""
        await self._settled.wait()

    def _fire(self, value: T) -> None:
        self._handle = None
        try:
            self.callback(value)
        finally:
            self._settled.set()
