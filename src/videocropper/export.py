"""Writing, reading and summarising exported crop metadata files."""

from __future__ import annotations

import argparse
import json
import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from implicitdict import ImplicitDict

from .metadata import MetadataRecord, MetadataSample

METADATA_FILENAME = "video-cropper-metadata.json"


def serialize_samples(samples: Iterable[MetadataSample]) -> str:
    records = [sample.to_record() for sample in samples]
    return json.dumps(records, indent=2)


def write_metadata_file(samples: Sequence[MetadataSample], directory: Path) -> Path:
    """Write ``samples`` as a JSON array into ``directory``.

    The file is always named ``video-cropper-metadata.json`` and is replaced
    if it exists.  ``OSError`` propagates to the caller.
    """

    path = directory / METADATA_FILENAME
    with path.open("w", encoding="utf-8") as handle:
        handle.write(serialize_samples(samples))
        handle.write("\n")
    return path


def load_metadata_file(path: Path) -> list[MetadataSample]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"'{path.name}' is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise ValueError(f"'{path.name}' does not contain a JSON array.")
    samples: list[MetadataSample] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValueError(f"Entry {index} of '{path.name}' is not an object.")
        try:
            record = ImplicitDict.parse(entry, MetadataRecord)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Entry {index} of '{path.name}' is invalid: {exc}") from exc
        if len(record.coordinates) != 4:
            raise ValueError(
                f"Entry {index} of '{path.name}' must have exactly four coordinates."
            )
        samples.append(MetadataSample.from_record(record))
    return samples


def _format_number(value: float) -> str:
    if math.isclose(value, 0.0, abs_tol=1e-9):
        value = 0.0
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    if text in {"", "-", "-0"}:
        return "0"
    return text


@dataclass
class MetadataSummary:
    """Human-readable summary of an exported metadata file."""

    samples: list[MetadataSample]

    @property
    def time_span(self) -> tuple[float, float] | None:
        if not self.samples:
            return None
        times = [sample.timestamp for sample in self.samples]
        return min(times), max(times)

    def format_sample(self, sample: MetadataSample) -> str:
        rect = ", ".join(_format_number(value) for value in sample.source_rect.as_tuple())
        return (
            f"t={_format_number(sample.timestamp)} rect=({rect})"
            f" volume={_format_number(sample.volume)}"
            f" rate={_format_number(sample.playback_rate)}"
        )

    def format_summary(self) -> str:
        span = self.time_span
        if span is None:
            return "0 samples"
        start, end = span
        lines = [
            f"{len(self.samples)} samples from {_format_number(start)}s to {_format_number(end)}s"
        ]
        lines.extend(self.format_sample(sample) for sample in self.samples)
        return "\n".join(lines)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Summarise a crop metadata file exported by videocropper.",
    )
    parser.add_argument(
        "file",
        nargs="?",
        type=Path,
        default=Path(METADATA_FILENAME),
        help=f"Metadata file to read (default: {METADATA_FILENAME}).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    path: Path = args.file

    if not path.is_file():
        raise SystemExit(f"Metadata file '{path}' does not exist.")
    try:
        samples = load_metadata_file(path)
    except (OSError, ValueError) as exc:
        print(f"Failed to read metadata: {exc}", file=sys.stderr)
        return 1

    print(MetadataSummary(samples).format_summary())
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation only
    sys.exit(main())
