from __future__ import annotations

import numpy as np
import pytest

from src.pipeline.grid import GridIndexOutOfRangeError, GridLayout, GridPacker
from src.pipeline.types import CompositingPolicy, Frame, PartialConfig


def test_placement_example_from_160x120_thumbnails() -> None:
    layout = GridLayout(160, 120, 1000, 1000, count=1000)
    assert layout.columns == 6
    assert layout.rows == 8
    placement = layout.place(47)
    assert (placement.file, placement.row, placement.column) == (0, 7, 5)
    assert (placement.x, placement.y) == (800, 840)
    assert layout.place(48).file == 1
    assert layout.grid_count == 21


def test_placement_is_a_bijection() -> None:
    layout = GridLayout(16, 9, 100, 40, count=250)
    seen = set()
    for index in range(layout.count):
        placement = layout.place(index)
        assert placement.file < layout.grid_count
        width, height = layout.grid_size(placement.file)
        assert placement.x + layout.thumbnail_width <= width
        assert placement.y + layout.thumbnail_height <= height
        seen.add((placement.file, placement.x, placement.y))
    assert len(seen) == layout.count


def test_last_grid_is_trimmed_to_used_cells() -> None:
    layout = GridLayout(10, 10, 50, 50, count=27)
    assert layout.grid_count == 2
    assert layout.grid_size(0) == (50, 50)
    assert layout.grid_size(1) == (20, 10)


def test_layout_from_completed_config() -> None:
    config = PartialConfig(timeline_width=10, thumbnail_height=120, max_grid_width=1000, max_grid_height=1000).complete(4 / 3)
    layout = GridLayout.from_config(config)
    assert layout.thumbnail_width == 160
    assert layout.count == 10
    assert layout.grid_size(0) == (960, 240)


def test_packer_copies_thumbnail_into_cell() -> None:
    layout = GridLayout(2, 2, 4, 4, count=6)
    packer = GridPacker(layout, CompositingPolicy.LAST_WRITER_WINS)
    assert len(packer.buffers) == 2

    thumb = Frame(data=np.full((2, 2, 4), 77, dtype=np.uint8), timestamp_seconds=0.0)
    placement = packer.pack(thumb, 5)

    assert (placement.file, placement.x, placement.y) == (1, 2, 0)
    grid = packer.images()[1]
    assert grid[0:2, 2:4].tolist() == [[[77, 77, 77, 255]] * 2] * 2
    assert not grid[:, 0:2].any()
    assert not packer.images()[0].any()


def test_packer_rejects_out_of_range_index() -> None:
    layout = GridLayout(2, 2, 4, 4, count=6)
    packer = GridPacker(layout, CompositingPolicy.LAST_WRITER_WINS)
    thumb = Frame(data=np.zeros((2, 2, 4), dtype=np.uint8))
    with pytest.raises(GridIndexOutOfRangeError) as excinfo:
        packer.pack(thumb, 8)
    assert excinfo.value.index == 8
    assert excinfo.value.file == 2


def test_thumbnail_larger_than_budget_is_rejected() -> None:
    with pytest.raises(ValueError):
        GridLayout(200, 10, 100, 100, count=4)


def _thumbnail(value: int, width: int, height: int) -> Frame:
    data = np.full((height, width, 4), value, dtype=np.uint8)
    return Frame(data=data, timestamp_seconds=0.0)


def test_average_packing_holds_no_sums_for_single_frames() -> None:
    layout = GridLayout(160, 90, 1000, 1000, count=1000)
    packer = GridPacker(layout, CompositingPolicy.AVERAGE)
    thumbnail = _thumbnail(77, 160, 90)
    for index in range(layout.count):
        packer.pack(thumbnail, index)
    assert packer.accumulator_bytes == 0


def test_average_packing_sums_stay_within_one_grid() -> None:
    layout = GridLayout(4, 2, 8, 4, count=8)
    packer = GridPacker(layout, CompositingPolicy.AVERAGE)
    for index in range(layout.count):
        packer.pack(_thumbnail(10 * index, 4, 2), index)
    packer.pack(_thumbnail(40, 4, 2), 1)
    packer.pack(_thumbnail(71, 4, 2), 1)

    width, height = layout.grid_size(0)
    assert packer.accumulator_bytes <= width * height * 3 * 4
    grids = packer.images()
    assert grids[0][0:2, 4:8, :3].tolist() == [[[40] * 3] * 4] * 2
    assert grids[0][0:2, 0:4, 0].tolist() == [[0] * 4] * 2
    assert grids[0][2:4, 0:4, 0].tolist() == [[20] * 4] * 2
    assert grids[1][0:2, 4:8, 0].tolist() == [[50] * 4] * 2
