"""Rectangle math shared by the crop controller, preview and recorder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in display space, relative to the video's top-left corner."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0.0 or self.height <= 0.0

    def translated(self, dx: float, dy: float) -> "CropRegion":
        return CropRegion(self.x + dx, self.y + dy, self.width, self.height)

    def contains(self, x: float, y: float) -> bool:
        return (
            self.x <= x <= self.x + self.width
            and self.y <= y <= self.y + self.height
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height


@dataclass(frozen=True)
class DisplayBox:
    """Bounding box of the rendered video in viewport coordinates."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def size(self) -> tuple[float, float]:
        return self.width, self.height

    def to_local(self, x: float, y: float) -> tuple[float, float]:
        return x - self.x, y - self.y


class AspectRatio(Enum):
    """The closed set of crop aspect ratios offered to the user."""

    PORTRAIT_9_16 = (9, 16)
    LANDSCAPE_16_9 = (16, 9)
    STANDARD_4_3 = (4, 3)
    SQUARE_1_1 = (1, 1)
    PORTRAIT_4_5 = (4, 5)

    @property
    def label(self) -> str:
        width, height = self.value
        return f"{width}:{height}"

    @classmethod
    def from_label(cls, label: str) -> "AspectRatio":
        for ratio in cls:
            if ratio.label == label:
                return ratio
        raise ValueError(f"Unsupported aspect ratio '{label}'.")

    @classmethod
    def labels(cls) -> list[str]:
        return [ratio.label for ratio in cls]


EMPTY_REGION = CropRegion()


def _scale_factors(
    from_size: tuple[float, float], to_size: tuple[float, float]
) -> tuple[float, float] | None:
    from_w, from_h = from_size
    to_w, to_h = to_size
    if from_w <= 0 or from_h <= 0:
        return None
    return to_w / from_w, to_h / from_h


def map_to_source(
    region: CropRegion,
    display_size: tuple[float, float],
    source_size: tuple[float, float],
) -> CropRegion:
    """Scale a display-space rectangle into the video's native pixel space.

    The X and Y factors are computed independently from the sizes passed in,
    so callers must pass the bounding box as it is right now.  A display box
    with a zero dimension maps everything to the empty rectangle.
    """

    factors = _scale_factors(display_size, source_size)
    if factors is None:
        return EMPTY_REGION
    scale_x, scale_y = factors
    return CropRegion(
        region.x * scale_x,
        region.y * scale_y,
        region.width * scale_x,
        region.height * scale_y,
    )


def map_to_display(
    region: CropRegion,
    display_size: tuple[float, float],
    source_size: tuple[float, float],
) -> CropRegion:
    """Inverse of :func:`map_to_source`."""

    factors = _scale_factors(source_size, display_size)
    if factors is None:
        return EMPTY_REGION
    scale_x, scale_y = factors
    return CropRegion(
        region.x * scale_x,
        region.y * scale_y,
        region.width * scale_x,
        region.height * scale_y,
    )


def _clamp_axis(position: float, size: float, bound: float) -> tuple[float, float]:
    bound = max(0.0, bound)
    size = max(0.0, size)
    if size >= bound:
        return 0.0, bound
    return max(0.0, min(position, bound - size)), size


def clamp_region(region: CropRegion, bounds_width: float, bounds_height: float) -> CropRegion:
    """Clip ``region`` into ``[0, bounds_width] x [0, bounds_height]``.

    Each axis is handled on its own.  An axis whose size does not fit is
    pinned to the origin and shrunk to the bound.
    """

    x, width = _clamp_axis(region.x, region.width, bounds_width)
    y, height = _clamp_axis(region.y, region.height, bounds_height)
    return CropRegion(x, y, width, height)


def compute_initial_region(ratio: AspectRatio, display_height: float) -> CropRegion:
    """Full-height region at the origin with the requested aspect ratio."""

    if display_height <= 0:
        return EMPTY_REGION
    ratio_w, ratio_h = ratio.value
    return CropRegion(0.0, 0.0, display_height * ratio_w / ratio_h, display_height)


def fit_display_rect(
    source_size: tuple[float, float] | None, area_width: float, area_height: float
) -> DisplayBox:
    """Letterboxed box of a video scaled to fit inside an area, centred."""

    if area_width <= 0 or area_height <= 0:
        return DisplayBox()
    if not source_size:
        return DisplayBox(0.0, 0.0, float(area_width), float(area_height))
    video_w, video_h = source_size
    if video_w <= 0 or video_h <= 0:
        return DisplayBox(0.0, 0.0, float(area_width), float(area_height))
    scale = min(area_width / video_w, area_height / video_h)
    display_width = video_w * scale
    display_height = video_h * scale
    offset_x = (area_width - display_width) / 2.0
    offset_y = (area_height - display_height) / 2.0
    return DisplayBox(offset_x, offset_y, display_width, display_height)


__all__ = [
    "AspectRatio",
    "CropRegion",
    "DisplayBox",
    "EMPTY_REGION",
    "clamp_region",
    "compute_initial_region",
    "fit_display_rect",
    "map_to_display",
    "map_to_source",
]
