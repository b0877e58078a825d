"""Crop region state machine.

Every input (buttons, pointer, aspect-ratio selector, playback progress) is
delivered to :class:`CropRegionController` as an event object through
:meth:`CropRegionController.dispatch`.  The controller is the only code that
replaces the current :class:`~videocropper.geometry.CropRegion`; the preview
renderer and metadata recorder receive it as an argument.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from .geometry import (
    EMPTY_REGION,
    AspectRatio,
    CropRegion,
    clamp_region,
    compute_initial_region,
)
from .host import MediaHost, Scheduler, TimerHandle
from .metadata import MetadataRecorder
from .preview import PREVIEW_INTERVAL_MS, PreviewRenderer


class CropState(Enum):
    HIDDEN = "hidden"
    VISIBLE_IDLE = "visible-idle"
    VISIBLE_DRAGGING = "visible-dragging"


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Remove:
    pass


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True)
class AspectRatioChange:
    ratio: AspectRatio


@dataclass(frozen=True)
class TimeAdvance:
    pass


@dataclass(frozen=True)
class DisplayResize:
    pass


CropEvent = Union[
    Start, Remove, PointerDown, PointerMove, PointerUp, AspectRatioChange, TimeAdvance, DisplayResize
]


@dataclass
class DragSession:
    anchor_pointer: tuple[float, float]
    region_at_anchor: CropRegion


class CropRegionController:
    """Owns the crop region, its visibility and the preview timer."""

    def __init__(
        self,
        host: MediaHost,
        recorder: MetadataRecorder,
        scheduler: Scheduler,
        preview: PreviewRenderer | None = None,
        aspect_ratio: AspectRatio = AspectRatio.PORTRAIT_9_16,
        on_change: Callable[["CropRegionController"], None] | None = None,
    ) -> None:
        self._host = host
        self._recorder = recorder
        self._scheduler = scheduler
        self._preview = preview
        self._aspect_ratio = aspect_ratio
        self._on_change = on_change
        self._state = CropState.HIDDEN
        self._region = EMPTY_REGION
        self._drag: DragSession | None = None
        self._preview_timer: TimerHandle | None = None
        self._handlers: dict[type, Callable[[Any], None]] = {
            Start: self._on_start,
            Remove: self._on_remove,
            PointerDown: self._on_pointer_down,
            PointerMove: self._on_pointer_move,
            PointerUp: self._on_pointer_up,
            AspectRatioChange: self._on_aspect_ratio_change,
            TimeAdvance: self._on_time_advance,
            DisplayResize: self._on_display_resize,
        }

    @property
    def state(self) -> CropState:
        return self._state

    @property
    def visible(self) -> bool:
        return self._state is not CropState.HIDDEN

    @property
    def region(self) -> CropRegion:
        return self._region

    @property
    def aspect_ratio(self) -> AspectRatio:
        return self._aspect_ratio

    @property
    def drag_session(self) -> DragSession | None:
        return self._drag

    def dispatch(self, event: CropEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported crop event {event!r}.")
        handler(event)

    def teardown(self) -> None:
        self._drag = None
        self._stop_preview()
        self._state = CropState.HIDDEN

    def _bounds(self) -> tuple[float, float]:
        return self._host.display_box().size

    def _set_region(self, region: CropRegion) -> None:
        self._region = region
        if self._on_change is not None:
            self._on_change(self)

    def _fit_region(self) -> CropRegion:
        """Re-clamp the region to the display box as it is now.

        The box changes with the widget allocation and once the intrinsic
        video size becomes known, independently of any crop event.
        """

        bounds_w, bounds_h = self._bounds()
        fitted = clamp_region(self._region, bounds_w, bounds_h)
        if fitted != self._region:
            self._set_region(fitted)
            if self._drag is not None:
                self._drag.region_at_anchor = fitted
        return self._region

    def _reset_region(self) -> None:
        bounds_w, bounds_h = self._bounds()
        initial = compute_initial_region(self._aspect_ratio, bounds_h)
        self._set_region(clamp_region(initial, bounds_w, bounds_h))

    def _on_start(self, _event: Start) -> None:
        if self.visible:
            return
        self._state = CropState.VISIBLE_IDLE
        self._reset_region()
        self._start_preview()

    def _on_remove(self, _event: Remove) -> None:
        if not self.visible:
            return
        self._drag = None
        self._stop_preview()
        self._state = CropState.HIDDEN
        if self._on_change is not None:
            self._on_change(self)

    def _on_pointer_down(self, event: PointerDown) -> None:
        if self._state is not CropState.VISIBLE_IDLE:
            return
        region = self._fit_region()
        local_x, local_y = self._host.display_box().to_local(event.x, event.y)
        if not region.contains(local_x, local_y):
            return
        self._drag = DragSession((event.x, event.y), region)
        self._state = CropState.VISIBLE_DRAGGING

    def _on_pointer_move(self, event: PointerMove) -> None:
        drag = self._drag
        if self._state is not CropState.VISIBLE_DRAGGING or drag is None:
            return
        dx = event.x - drag.anchor_pointer[0]
        dy = event.y - drag.anchor_pointer[1]
        candidate = drag.region_at_anchor.translated(dx, dy)
        bounds_w, bounds_h = self._bounds()
        self._set_region(clamp_region(candidate, bounds_w, bounds_h))
        # The anchor rolls forward on every move, so overshoot past an edge is
        # not remembered when the pointer turns back.
        drag.anchor_pointer = (event.x, event.y)
        drag.region_at_anchor = self._region

    def _on_pointer_up(self, _event: PointerUp) -> None:
        if self._state is not CropState.VISIBLE_DRAGGING:
            return
        self._drag = None
        self._state = CropState.VISIBLE_IDLE
        self._recorder.on_drag_released(self._fit_region())

    def _on_aspect_ratio_change(self, event: AspectRatioChange) -> None:
        self._aspect_ratio = event.ratio
        if not self.visible:
            return
        self._reset_region()
        if self._drag is not None:
            self._drag.region_at_anchor = self._region

    def _on_time_advance(self, _event: TimeAdvance) -> None:
        if not self.visible:
            return
        self._recorder.on_time_advanced(self._fit_region())

    def _on_display_resize(self, _event: DisplayResize) -> None:
        if self.visible:
            self._fit_region()

    def _on_preview_tick(self) -> None:
        if self._preview is not None and self.visible:
            self._preview.render(self._fit_region())

    def _start_preview(self) -> None:
        if self._preview_timer is None:
            self._preview_timer = self._scheduler.call_every(
                PREVIEW_INTERVAL_MS, self._on_preview_tick
            )

    def _stop_preview(self) -> None:
        timer = self._preview_timer
        self._preview_timer = None
        if timer is not None:
            timer.cancel()


__all__ = [
    "AspectRatioChange",
    "CropEvent",
    "CropRegionController",
    "CropState",
    "DisplayResize",
    "DragSession",
    "PointerDown",
    "PointerMove",
    "PointerUp",
    "Remove",
    "Start",
    "TimeAdvance",
]
