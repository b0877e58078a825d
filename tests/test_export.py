from __future__ import annotations

import json
from pathlib import Path

import pytest

from videocropper.export import (
    METADATA_FILENAME,
    MetadataSummary,
    load_metadata_file,
    main,
    write_metadata_file,
)
from videocropper.geometry import CropRegion
from videocropper.metadata import MetadataSample

SAMPLES = (
    MetadataSample(0.25, CropRegion(0.0, 0.0, 607.5, 1080.0), 1.0, 1.0),
    MetadataSample(1.5, CropRegion(120.5, 0.0, 607.5, 1080.0), 0.4, 1.5),
)


def test_write_metadata_file(tmp_path: Path) -> None:
    path = write_metadata_file(SAMPLES, tmp_path)
    assert path == tmp_path / METADATA_FILENAME
    assert path.name == "video-cropper-metadata.json"

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == [
        {"timeStamp": 0.25, "coordinates": [0.0, 0.0, 607.5, 1080.0], "volume": 1.0, "playbackRate": 1.0},
        {"timeStamp": 1.5, "coordinates": [120.5, 0.0, 607.5, 1080.0], "volume": 0.4, "playbackRate": 1.5},
    ]


def test_write_empty_log(tmp_path: Path) -> None:
    path = write_metadata_file((), tmp_path)
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_exported_file_loads_back(tmp_path: Path) -> None:
    path = write_metadata_file(SAMPLES, tmp_path)
    assert load_metadata_file(path) == list(SAMPLES)


def test_export_twice_gives_identical_files(tmp_path: Path, recorder) -> None:
    recorder.on_time_advanced(CropRegion(0.0, 0.0, 100.0, 100.0))
    first = write_metadata_file(recorder.export(), tmp_path).read_text(encoding="utf-8")
    second = write_metadata_file(recorder.export(), tmp_path).read_text(encoding="utf-8")
    assert first == second
    assert len(recorder.log) == 1


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"timeStamp": 1}',
        '[{"timeStamp": 1, "volume": 1, "playbackRate": 1}]',
        '[{"timeStamp": 1, "coordinates": [1, 2], "volume": 1, "playbackRate": 1}]',
    ],
)
def test_load_rejects_malformed_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / METADATA_FILENAME
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        load_metadata_file(path)


def test_summary_format() -> None:
    text = MetadataSummary(list(SAMPLES)).format_summary()
    assert text.splitlines() == [
        "2 samples from 0.25s to 1.5s",
        "t=0.25 rect=(0, 0, 607.5, 1080) volume=1 rate=1",
        "t=1.5 rect=(120.5, 0, 607.5, 1080) volume=0.4 rate=1.5",
    ]
    assert MetadataSummary([]).format_summary() == "0 samples"


def test_main_prints_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_metadata_file(SAMPLES, tmp_path)
    assert main([str(path)]) == 0
    assert capsys.readouterr().out.startswith("2 samples from 0.25s to 1.5s")


def test_main_reports_invalid_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / METADATA_FILENAME
    path.write_text("[1, 2]", encoding="utf-8")
    assert main([str(path)]) == 1
    assert "Failed to read metadata" in capsys.readouterr().err


def test_main_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main([str(tmp_path / "missing.json")])
