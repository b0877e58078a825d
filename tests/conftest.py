"""Shared fakes for the crop core.

The tests never touch GTK or GStreamer; the media host, preview surface and
timer scheduler are replaced by the plain objects below.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from videocropper.geometry import CropRegion, DisplayBox
from videocropper.metadata import MetadataLog, MetadataRecorder


class FakeMediaHost:
    def __init__(
        self,
        display: DisplayBox = DisplayBox(0.0, 0.0, 1000.0, 1000.0),
        source: tuple[float, float] | None = (2000.0, 1000.0),
    ) -> None:
        self.display = display
        self.source = source
        self.current_time = 0.0
        self.volume = 1.0
        self.playback_rate = 1.0
        self.frame: Any | None = object()

    def source_size(self) -> tuple[float, float] | None:
        return self.source

    def display_box(self) -> DisplayBox:
        return self.display

    def current_frame(self) -> Any | None:
        return self.frame


class FakePreviewSurface:
    def __init__(self) -> None:
        self.available = True
        self.sizes: list[tuple[int, int]] = []
        self.draws: list[tuple[Any, CropRegion, CropRegion]] = []

    def set_size(self, width: int, height: int) -> None:
        self.sizes.append((width, height))

    def draw(self, frame: Any, source_rect: CropRegion, dest_rect: CropRegion) -> None:
        self.draws.append((frame, source_rect, dest_rect))


class ManualTimer:
    def __init__(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self.interval_ms = interval_ms
        self.callback = callback
        self.cancel_count = 0

    @property
    def active(self) -> bool:
        return self.cancel_count == 0

    def cancel(self) -> None:
        self.cancel_count += 1


class ManualScheduler:
    """Scheduler whose timers only fire when the test calls :meth:`tick`."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval_ms, callback)
        self.timers.append(timer)
        return timer

    @property
    def active_timers(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if timer.active]

    def tick(self) -> None:
        for timer in self.active_timers:
            timer.callback()


@pytest.fixture
def host() -> FakeMediaHost:
    return FakeMediaHost()


@pytest.fixture
def surface() -> FakePreviewSurface:
    return FakePreviewSurface()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recorder(host: FakeMediaHost) -> MetadataRecorder:
    return MetadataRecorder(host, MetadataLog())
