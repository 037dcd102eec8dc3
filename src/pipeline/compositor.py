"""Raster buffers and the timeline column compositor."""
from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import numpy as np

from .types import CHANNELS, OPAQUE, CompositingPolicy, Frame


class RasterBuffer:
    """Pre-allocated BGRx output raster; writes touch one rectangle at a time."""

    def __init__(self, width: int, height: int) -> None:
        if width < 1 or height < 1:
            raise ValueError(f"Raster size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.data = np.zeros((self.height, self.width, CHANNELS), dtype=np.uint8)

    def region(self, x: int, y: int, width: int, height: int) -> np.ndarray:
        if x < 0 or y < 0 or x + width > self.width or y + height > self.height:
            raise ValueError(
                f"Region {width}x{height}+{x}+{y} outside raster {self.width}x{self.height}"
            )
        return self.data[y : y + height, x : x + width]

    def paste(self, pixels: np.ndarray, x: int, y: int) -> None:
        """Copy ``pixels`` with its top left corner at ``(x, y)``; alpha is forced opaque."""
        target = self.region(x, y, pixels.shape[1], pixels.shape[0])
        target[:, :, :3] = pixels[:, :, :3]
        target[:, :, 3] = OPAQUE


class PolicyWriter:
    """Applies a :class:`CompositingPolicy` to writes keyed by bucket index.

    Under ``AVERAGE`` a buffer gets an integer sum raster the first time one
    of its buckets is written twice. Until then every cell holds its single
    frame verbatim, so the sums can be seeded from the buffer itself.
    """

    def __init__(self, policy: CompositingPolicy) -> None:
        self._policy = CompositingPolicy(policy)
        self._writes: Dict[int, int] = {}
        self._totals: Dict[RasterBuffer, np.ndarray] = {}

    @property
    def policy(self) -> CompositingPolicy:
        return self._policy

    @property
    def accumulator_bytes(self) -> int:
        return sum(total.nbytes for total in self._totals.values())

    def write(self, buffer: RasterBuffer, key: int, pixels: np.ndarray, origin: Tuple[int, int]) -> bool:
        """Write ``pixels`` for bucket ``key``; returns False if the policy skipped it."""
        x, y = origin
        seen = self._writes.get(key, 0)

        if self._policy is CompositingPolicy.FIRST_WRITER_WINS and seen:
            return False

        if self._policy is CompositingPolicy.AVERAGE:
            pixels = self._running_mean(buffer, pixels, x, y, seen)

        buffer.paste(pixels, x, y)
        self._writes[key] = seen + 1
        return True

    def _running_mean(self, buffer: RasterBuffer, pixels: np.ndarray, x: int, y: int, seen: int) -> np.ndarray:
        height, width = pixels.shape[:2]
        buffer.region(x, y, width, height)
        totals = self._totals.get(buffer)
        if totals is None:
            if not seen:
                return pixels
            totals = buffer.data[:, :, :3].astype(np.uint32)
            self._totals[buffer] = totals
        cell = totals[y : y + height, x : x + width]
        if not seen:
            cell[...] = 0
        cell += pixels[:, :, :3]
        return (cell // (seen + 1)).astype(np.uint8)


class TimelineCompositor:
    """Writes averaged one-pixel columns into the timeline raster."""

    def __init__(
        self,
        width: int,
        height: int,
        policy: CompositingPolicy = CompositingPolicy.LAST_WRITER_WINS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.buffer = RasterBuffer(width, height)
        self._writer = PolicyWriter(policy)
        self._logger = logger or logging.getLogger(__name__)

    @property
    def policy(self) -> CompositingPolicy:
        return self._writer.policy

    def compose(self, column: Frame, index: int) -> bool:
        if column.data is None or column.width != 1:
            raise ValueError(f"Timeline compositing expects a 1-pixel column, got width {column.width}")
        if column.height != self.buffer.height:
            raise ValueError(
                f"Column height {column.height} does not match timeline height {self.buffer.height}"
            )
        if not 0 <= index < self.buffer.width:
            raise ValueError(f"Column index {index} outside timeline width {self.buffer.width}")

        written = self._writer.write(self.buffer, index, column.data, (index, 0))
        if not written:
            self._logger.debug("Column %d already filled; frame %d ignored", index, column.frame_index)
        return written
