"""Thumbnail grid layout and packing."""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import numpy as np

from .compositor import PolicyWriter, RasterBuffer
from .types import CompositorConfig, Frame, GridPlacement, TimestripError


class GridIndexOutOfRangeError(TimestripError):
    """Raised when a thumbnail index falls outside the pre-allocated grids."""

    def __init__(self, index: int, file: int, grid_count: int) -> None:
        super().__init__(f"Thumbnail {index} maps to grid {file}, but only {grid_count} grid(s) exist")
        self.index = index
        self.file = file
        self.grid_count = grid_count


class GridLayout:
    """Pure placement of ``count`` thumbnails into budget-bounded grid images."""

    def __init__(
        self,
        thumbnail_width: int,
        thumbnail_height: int,
        max_grid_width: int,
        max_grid_height: int,
        count: int,
    ) -> None:
        if thumbnail_width < 1 or thumbnail_height < 1:
            raise ValueError("thumbnail size must be positive")
        if count < 1:
            raise ValueError("thumbnail count must be at least 1")
        self.thumbnail_width = int(thumbnail_width)
        self.thumbnail_height = int(thumbnail_height)
        self.columns = int(max_grid_width) // self.thumbnail_width
        self.rows = int(max_grid_height) // self.thumbnail_height
        if self.columns < 1 or self.rows < 1:
            raise ValueError(
                f"Thumbnail {self.thumbnail_width}x{self.thumbnail_height} exceeds grid budget "
                f"{max_grid_width}x{max_grid_height}"
            )
        self.count = int(count)
        self.per_grid = self.columns * self.rows
        self.grid_count = math.ceil(self.count / self.per_grid)

    @classmethod
    def from_config(cls, config: CompositorConfig) -> "GridLayout":
        return cls(
            config.thumbnail_width,
            config.thumbnail_height,
            config.max_grid_width,
            config.max_grid_height,
            config.timeline_width,
        )

    def place(self, index: int) -> GridPlacement:
        file, local = divmod(int(index), self.per_grid)
        row, column = divmod(local, self.columns)
        return GridPlacement(
            file=file,
            row=row,
            column=column,
            x=column * self.thumbnail_width,
            y=row * self.thumbnail_height,
        )

    def grid_size(self, file: int) -> Tuple[int, int]:
        """Pixel size of grid ``file``; the last grid only spans the cells it uses."""
        if not 0 <= file < self.grid_count:
            raise GridIndexOutOfRangeError(-1, file, self.grid_count)
        cells = min(self.per_grid, self.count - file * self.per_grid)
        columns = min(self.columns, cells)
        rows = math.ceil(cells / self.columns)
        return columns * self.thumbnail_width, rows * self.thumbnail_height


class GridPacker:
    """Copies scaled thumbnails into their cell of the pre-allocated grids."""

    def __init__(self, layout: GridLayout, policy, logger: Optional[logging.Logger] = None) -> None:
        self.layout = layout
        self._logger = logger or logging.getLogger(__name__)
        self._writer = PolicyWriter(policy)
        self.buffers: List[RasterBuffer] = [
            RasterBuffer(*layout.grid_size(file)) for file in range(layout.grid_count)
        ]

    def pack(self, thumbnail: Frame, index: int) -> GridPlacement:
        placement = self.layout.place(index)
        if index < 0 or index >= self.layout.count or placement.file >= len(self.buffers):
            raise GridIndexOutOfRangeError(index, placement.file, len(self.buffers))
        if (thumbnail.width, thumbnail.height) != (self.layout.thumbnail_width, self.layout.thumbnail_height):
            raise ValueError(
                f"Thumbnail is {thumbnail.width}x{thumbnail.height}, expected "
                f"{self.layout.thumbnail_width}x{self.layout.thumbnail_height}"
            )
        self._writer.write(self.buffers[placement.file], index, thumbnail.data, (placement.x, placement.y))
        return placement

    @property
    def accumulator_bytes(self) -> int:
        return self._writer.accumulator_bytes

    def images(self) -> List[np.ndarray]:
        return [buffer.data for buffer in self.buffers]
