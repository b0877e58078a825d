"""Live preview of the cropped area."""

from __future__ import annotations

from .geometry import CropRegion, map_to_source
from .host import MediaHost, PreviewSurface

PREVIEW_INTERVAL_MS = 100


class PreviewRenderer:
    """Copies the crop sub-rectangle of the current frame into a surface.

    ``render`` is called on every preview timer tick, whether or not the
    video is playing.  The surface is resized to the crop region's display
    size only when that size changes.
    """

    def __init__(self, host: MediaHost, surface: PreviewSurface) -> None:
        self._host = host
        self._surface = surface
        self._surface_size: tuple[int, int] | None = None

    @property
    def surface_size(self) -> tuple[int, int] | None:
        return self._surface_size

    def render(self, region: CropRegion) -> bool:
        """Draw one preview frame; returns False when the tick was skipped."""

        if region.is_empty or not self._surface.available:
            return False
        source_size = self._host.source_size()
        if not source_size:
            return False
        source_rect = map_to_source(region, self._host.display_box().size, source_size)
        if source_rect.is_empty:
            return False

        width = int(round(region.width))
        height = int(round(region.height))
        if width <= 0 or height <= 0:
            return False
        if self._surface_size != (width, height):
            self._surface.set_size(width, height)
            self._surface_size = (width, height)

        frame = self._host.current_frame()
        if frame is None:
            return False
        self._surface.draw(frame, source_rect, CropRegion(0.0, 0.0, float(width), float(height)))
        return True


__all__ = ["PREVIEW_INTERVAL_MS", "PreviewRenderer"]
