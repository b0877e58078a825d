"""Repeating timers on the GLib main loop."""

from __future__ import annotations

from typing import Callable

from gi.repository import GLib


class GLibTimer:
    """Repeating GLib timeout that can be cancelled once.

    A callback that raises ends the timeout: PyGObject reports the exception
    and drops the source, so the id is forgotten before the error propagates.
    """

    def __init__(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._source_id: int | None = GLib.timeout_add(interval_ms, self._on_timeout)

    @property
    def source_id(self) -> int | None:
        return self._source_id

    def _on_timeout(self) -> bool:
        try:
            self._callback()
        except Exception:
            self._source_id = None
            raise
        return GLib.SOURCE_CONTINUE

    def cancel(self) -> None:
        if self._source_id is not None:
            GLib.source_remove(self._source_id)
            self._source_id = None


class GLibScheduler:
    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> GLibTimer:
        return GLibTimer(interval_ms, callback)


__all__ = ["GLibScheduler", "GLibTimer"]
