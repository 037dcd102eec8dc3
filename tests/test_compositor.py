from __future__ import annotations

import numpy as np
import pytest

from src.pipeline.compositor import RasterBuffer, TimelineCompositor
from src.pipeline.types import CompositingPolicy, Frame


def _column(value: int, height: int = 3) -> Frame:
    data = np.zeros((height, 1, 4), dtype=np.uint8)
    data[:, :, :3] = value
    return Frame(data=data, timestamp_seconds=0.0)


def test_compose_writes_into_column_with_opaque_alpha() -> None:
    compositor = TimelineCompositor(4, 3)
    column = _column(90)
    column.data[:, :, 3] = 0

    assert compositor.compose(column, 2) is True

    buffer = compositor.buffer.data
    assert buffer[:, 2].tolist() == [[90, 90, 90, 255]] * 3
    assert not buffer[:, [0, 1, 3]].any()


@pytest.mark.parametrize("policy", list(CompositingPolicy))
def test_composing_twice_is_idempotent(policy: CompositingPolicy) -> None:
    once = TimelineCompositor(3, 3, policy)
    twice = TimelineCompositor(3, 3, policy)
    column = _column(123)

    once.compose(column, 1)
    twice.compose(column, 1)
    twice.compose(column, 1)

    np.testing.assert_array_equal(once.buffer.data, twice.buffer.data)


def test_last_writer_wins_by_default() -> None:
    compositor = TimelineCompositor(2, 3)
    compositor.compose(_column(10), 0)
    compositor.compose(_column(200), 0)
    assert compositor.buffer.data[0, 0, 0] == 200


def test_first_writer_wins_keeps_first_frame() -> None:
    compositor = TimelineCompositor(2, 3, CompositingPolicy.FIRST_WRITER_WINS)
    assert compositor.compose(_column(10), 0) is True
    assert compositor.compose(_column(200), 0) is False
    assert compositor.buffer.data[0, 0, 0] == 10


def test_average_policy_keeps_running_mean() -> None:
    compositor = TimelineCompositor(2, 3, CompositingPolicy.AVERAGE)
    compositor.compose(_column(10), 1)
    compositor.compose(_column(20), 1)
    compositor.compose(_column(31), 1)
    assert compositor.buffer.data[0, 1, :3].tolist() == [20, 20, 20]


def test_compose_rejects_mismatched_column() -> None:
    compositor = TimelineCompositor(2, 3)
    with pytest.raises(ValueError):
        compositor.compose(_column(1, height=4), 0)
    with pytest.raises(ValueError):
        compositor.compose(_column(1), 2)


def test_raster_paste_outside_bounds_fails() -> None:
    raster = RasterBuffer(4, 4)
    with pytest.raises(ValueError):
        raster.paste(np.zeros((2, 2, 4), dtype=np.uint8), 3, 0)


def test_average_policy_seeds_sums_from_single_frame_columns() -> None:
    compositor = TimelineCompositor(3, 3, CompositingPolicy.AVERAGE)
    compositor.compose(_column(10), 0)
    compositor.compose(_column(20), 1)
    compositor.compose(_column(30), 0)
    compositor.compose(_column(41), 1)
    compositor.compose(_column(7), 2)
    assert compositor.buffer.data[0, :, 0].tolist() == [20, 30, 7]
