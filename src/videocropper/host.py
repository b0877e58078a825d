"""Interfaces the crop core expects from the application hosting it."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from .geometry import CropRegion, DisplayBox


class MediaHost(Protocol):
    """The playing video as seen by the crop core.

    ``volume`` is linear in ``0..1``.  ``source_size`` is ``None`` until the
    intrinsic resolution is known and ``current_frame`` is ``None`` until a
    frame has been decoded.
    """

    @property
    def current_time(self) -> float: ...

    @property
    def volume(self) -> float: ...

    @property
    def playback_rate(self) -> float: ...

    def source_size(self) -> tuple[float, float] | None: ...

    def display_box(self) -> DisplayBox: ...

    def current_frame(self) -> Any | None: ...


class PreviewSurface(Protocol):
    """A raster target able to draw a sub-rectangle of a frame."""

    @property
    def available(self) -> bool: ...

    def set_size(self, width: int, height: int) -> None: ...

    def draw(self, frame: Any, source_rect: CropRegion, dest_rect: CropRegion) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Creates repeating timers on the application's event loop."""

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


__all__ = ["MediaHost", "PreviewSurface", "Scheduler", "TimerHandle"]
