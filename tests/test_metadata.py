from __future__ import annotations

import dataclasses

import pytest

from videocropper.geometry import CropRegion, DisplayBox
from videocropper.metadata import MetadataLog, MetadataRecord, MetadataSample


def _sample(timestamp: float) -> MetadataSample:
    return MetadataSample(timestamp, CropRegion(1.0, 2.0, 3.0, 4.0), 0.5, 1.0)


def test_recorder_samples_host_state(host, recorder) -> None:
    host.current_time = 12.5
    host.volume = 0.3
    host.playback_rate = 2.0
    sample = recorder.on_drag_released(CropRegion(10.0, 10.0, 100.0, 50.0))

    assert sample.timestamp == 12.5
    assert sample.volume == 0.3
    assert sample.playback_rate == 2.0
    assert sample.source_rect == CropRegion(20.0, 10.0, 200.0, 50.0)
    assert recorder.export() == (sample,)


def test_recorder_reads_display_box_on_every_sample(host, recorder) -> None:
    region = CropRegion(10.0, 10.0, 100.0, 100.0)
    first = recorder.on_time_advanced(region)
    host.display = DisplayBox(0.0, 0.0, 500.0, 500.0)
    second = recorder.on_time_advanced(region)
    assert first.source_rect == CropRegion(20.0, 10.0, 200.0, 100.0)
    assert second.source_rect == CropRegion(40.0, 20.0, 400.0, 200.0)


def test_recorder_with_zero_display_records_empty_rect(host, recorder) -> None:
    host.display = DisplayBox()
    sample = recorder.on_time_advanced(CropRegion(10.0, 10.0, 100.0, 100.0))
    assert sample.source_rect == CropRegion()


def test_identical_triggers_are_not_deduplicated(recorder) -> None:
    region = CropRegion(0.0, 0.0, 10.0, 10.0)
    recorder.on_time_advanced(region)
    recorder.on_drag_released(region)
    recorder.on_time_advanced(region)
    samples = recorder.export()
    assert len(samples) == 3
    assert samples[0] == samples[1] == samples[2]


def test_export_is_an_idempotent_snapshot(recorder) -> None:
    recorder.on_time_advanced(CropRegion(0.0, 0.0, 10.0, 10.0))
    first = recorder.export()
    second = recorder.export()
    assert first == second
    assert isinstance(first, tuple)
    assert len(recorder.log) == 1

    recorder.on_time_advanced(CropRegion(0.0, 0.0, 20.0, 20.0))
    assert len(first) == 1
    assert len(recorder.export()) == 2


def test_log_keeps_append_order() -> None:
    log = MetadataLog()
    for timestamp in (3.0, 1.0, 2.0):
        log.append(_sample(timestamp))
    assert [sample.timestamp for sample in log] == [3.0, 1.0, 2.0]
    assert len(log) == 3
    assert not hasattr(log, "remove")
    assert not hasattr(log, "clear")


def test_samples_are_immutable() -> None:
    sample = _sample(0.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        sample.timestamp = 5.0  # type: ignore[misc]


def test_record_uses_export_field_names() -> None:
    record = _sample(7.0).to_record()
    assert isinstance(record, MetadataRecord)
    assert dict(record) == {
        "timeStamp": 7.0,
        "coordinates": [1.0, 2.0, 3.0, 4.0],
        "volume": 0.5,
        "playbackRate": 1.0,
    }
    assert MetadataSample.from_record(record) == _sample(7.0)
