"""Metadata samples recorded while the crop region is visible."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

from implicitdict import ImplicitDict

from .geometry import CropRegion, map_to_source
from .host import MediaHost


class MetadataRecord(ImplicitDict):
    """One entry of the exported metadata array.

    ``coordinates`` is ``[x, y, width, height]`` in pixels of the decoded video
    frame, measured from its top-left corner.  ``timeStamp`` is the playback
    position in seconds, ``volume`` is linear in ``0..1`` and ``playbackRate``
    is the playback speed multiplier at the time of the sample.
    """

    timeStamp: float
    coordinates: List[float]
    volume: float
    playbackRate: float


@dataclass(frozen=True)
class MetadataSample:
    timestamp: float
    source_rect: CropRegion
    volume: float
    playback_rate: float

    def to_record(self) -> MetadataRecord:
        return MetadataRecord(
            timeStamp=self.timestamp,
            coordinates=list(self.source_rect.as_tuple()),
            volume=self.volume,
            playbackRate=self.playback_rate,
        )

    @classmethod
    def from_record(cls, record: MetadataRecord) -> "MetadataSample":
        x, y, width, height = (float(value) for value in record.coordinates)
        return cls(
            timestamp=float(record.timeStamp),
            source_rect=CropRegion(x, y, width, height),
            volume=float(record.volume),
            playback_rate=float(record.playbackRate),
        )


class MetadataLog:
    """Append-only sequence of samples in creation order."""

    def __init__(self) -> None:
        self._samples: list[MetadataSample] = []

    def append(self, sample: MetadataSample) -> None:
        self._samples.append(sample)

    def snapshot(self) -> tuple[MetadataSample, ...]:
        return tuple(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[MetadataSample]:
        return iter(self.snapshot())


class MetadataRecorder:
    """Builds samples from the host's playback state and appends them to a log.

    The recorder does not know whether the crop region is visible; the
    controller only calls it while it is.
    """

    def __init__(self, host: MediaHost, log: MetadataLog | None = None) -> None:
        self._host = host
        self._log = log if log is not None else MetadataLog()

    @property
    def log(self) -> MetadataLog:
        return self._log

    def on_drag_released(self, region: CropRegion) -> MetadataSample:
        return self._record(region)

    def on_time_advanced(self, region: CropRegion) -> MetadataSample:
        return self._record(region)

    def export(self) -> tuple[MetadataSample, ...]:
        return self._log.snapshot()

    def _record(self, region: CropRegion) -> MetadataSample:
        host = self._host
        source_size = host.source_size() or (0.0, 0.0)
        sample = MetadataSample(
            timestamp=float(host.current_time),
            source_rect=map_to_source(region, host.display_box().size, source_size),
            volume=float(host.volume),
            playback_rate=float(host.playback_rate),
        )
        self._log.append(sample)
        return sample


__all__ = [
    "MetadataLog",
    "MetadataRecord",
    "MetadataRecorder",
    "MetadataSample",
]
