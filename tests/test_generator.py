from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
import pytest

from src.pipeline.buckets import InvalidDurationError, MissingTimestampError
from src.pipeline.generator import TimelineGenerator
from src.pipeline.sources import MemoryFrameSource
from src.pipeline.types import CompositingPolicy, Frame, PartialConfig


def _solid(value: int, timestamp: Optional[float], index: int, size=(8, 6)) -> Frame:
    width, height = size
    data = np.full((height, width, 4), value, dtype=np.uint8)
    return Frame(data=data, timestamp_seconds=timestamp, frame_index=index)


def _config(width: int = 4, **overrides) -> PartialConfig:
    values = dict(
        timeline_width=width,
        timeline_height=3,
        thumbnail_height=6,
        max_grid_width=16,
        max_grid_height=12,
    )
    values.update(overrides)
    return PartialConfig(**values)


def test_scenario_stops_early_once_every_column_is_filled() -> None:
    frames: List[Frame] = [
        _solid(10 * (i + 1), t, i) for i, t in enumerate([3.5, 0.2, 1.9, 1.1, 2.5, 0.7])
    ]
    source = MemoryFrameSource(frames, duration_seconds=4.0, aspect_ratio=8 / 6)

    result = TimelineGenerator(_config()).generate(source)

    assert result.frames_seen == 5
    assert source.consumed == 5
    assert source.closed
    assert result.stopped_early is True
    assert result.done.tolist() == [1, 2, 1, 1]
    # Column 1 got pts=1.9 (value 30) then pts=1.1 (value 40); last writer wins.
    assert result.timeline[:, 1, 0].tolist() == [40, 40, 40]
    assert result.timeline[:, 2, 0].tolist() == [50, 50, 50]
    assert result.timeline[:, :, 3].min() == 255


def test_incomplete_stream_runs_to_exhaustion() -> None:
    frames = [_solid(10, t, i) for i, t in enumerate([3.5, 0.2, 1.9, 1.1])]
    source = MemoryFrameSource(frames, duration_seconds=4.0, aspect_ratio=8 / 6)

    result = TimelineGenerator(_config()).generate(source)

    assert result.frames_seen == 4
    assert result.stopped_early is False
    assert result.done.tolist() == [1, 2, 0, 1]
    assert result.summary["columns_missing"] == 1
    assert not result.timeline[:, 2].any()


def test_early_stop_can_be_disabled() -> None:
    frames = [_solid(10, t, i) for i, t in enumerate([0.5, 1.5, 2.5, 3.5, 0.6])]
    source = MemoryFrameSource(frames, duration_seconds=4.0, aspect_ratio=8 / 6)

    result = TimelineGenerator(_config(early_stop=False)).generate(source)

    assert result.frames_seen == 5
    assert result.stopped_early is False
    assert result.done.tolist() == [2, 1, 1, 1]


def test_first_writer_policy_ignores_arrival_order_overwrites() -> None:
    frames = [_solid(10, 0.1, 0), _solid(200, 0.2, 1)]
    source = MemoryFrameSource(frames, duration_seconds=4.0, aspect_ratio=8 / 6)

    result = TimelineGenerator(_config(policy=CompositingPolicy.FIRST_WRITER_WINS)).generate(source)

    assert result.timeline[0, 0, 0] == 10
    assert result.grids[0][0, 0, 0] == 10


def test_thumbnails_are_packed_into_grids() -> None:
    frames = [_solid(20 * (i + 1), i + 0.5, i) for i in range(5)]
    source = MemoryFrameSource(frames, duration_seconds=5.0, aspect_ratio=8 / 6)

    result = TimelineGenerator(_config(width=5)).generate(source)

    # thumbnails are 8x6; a 16x12 budget holds 2x2 per grid
    assert result.config.thumbnail_width == 8
    assert len(result.grids) == 2
    assert result.grids[0].shape == (12, 16, 4)
    assert result.grids[1].shape == (6, 8, 4)
    assert result.grids[0][6, 8, 0] == 80
    assert result.grids[1][0, 0, 0] == 100


def test_thumbnails_can_be_skipped() -> None:
    source = MemoryFrameSource([_solid(1, 0.0, 0)], duration_seconds=1.0, aspect_ratio=8 / 6)
    result = TimelineGenerator(_config(width=1), with_thumbnails=False).generate(source)
    assert result.grids == []


def test_unreadable_frames_are_dropped_and_logged(caplog) -> None:
    broken = Frame(data=None, timestamp_seconds=0.1, frame_index=0)
    frames = [broken, _solid(90, 0.2, 1)]
    source = MemoryFrameSource(frames, duration_seconds=1.0, aspect_ratio=8 / 6)

    with caplog.at_level(logging.WARNING):
        result = TimelineGenerator(_config(width=1)).generate(source)

    assert result.frames_dropped == 1
    assert result.frames_seen == 2
    assert result.timeline[0, 0, 0] == 90
    assert any("Dropping frame" in record.message for record in caplog.records)


def test_missing_timestamp_is_fatal_and_closes_source() -> None:
    frames = [_solid(1, 0.1, 0), _solid(1, None, 1)]
    source = MemoryFrameSource(frames, duration_seconds=4.0, aspect_ratio=8 / 6)

    with pytest.raises(MissingTimestampError) as excinfo:
        TimelineGenerator(_config()).generate(source)

    assert excinfo.value.frame_index == 1
    assert source.closed


def test_invalid_duration_is_fatal() -> None:
    source = MemoryFrameSource([_solid(1, 0.1, 0)], duration_seconds=0.0, aspect_ratio=8 / 6)
    with pytest.raises(InvalidDurationError):
        TimelineGenerator(_config()).generate(source)
    assert source.closed


def test_progress_callback_reports_percentages() -> None:
    reported: List[float] = []
    frames = [_solid(1, t, i) for i, t in enumerate([0.5, 1.5])]
    source = MemoryFrameSource(frames, duration_seconds=2.0, aspect_ratio=8 / 6)

    TimelineGenerator(_config(width=2), progress=reported.append).generate(source)

    assert reported == [50.0, 100.0]
