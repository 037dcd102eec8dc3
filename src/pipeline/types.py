"""Typed primitives for the Timestrip compositor."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

CHANNELS = 4  # BGRx; the fourth byte is alpha and always written as 255
OPAQUE = 255


class TimestripError(RuntimeError):
    """Base class for every error raised by the compositor."""


class InvalidConfigError(TimestripError):
    """Raised when a configuration cannot be completed or is inconsistent."""


class CompositingPolicy(str, Enum):
    """How repeated frames landing in the same bucket are combined."""

    LAST_WRITER_WINS = "last"
    FIRST_WRITER_WINS = "first"
    AVERAGE = "average"


@dataclass
class Frame:
    """A decoded frame: a ``(height, width, 4)`` uint8 BGRx buffer plus its pts."""

    data: Optional[np.ndarray]
    timestamp_seconds: Optional[float] = None
    frame_index: int = -1

    @property
    def width(self) -> int:
        return int(self.data.shape[1]) if self.data is not None and self.data.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.data.shape[0]) if self.data is not None and self.data.ndim >= 2 else 0

    @classmethod
    def blank(cls, width: int, height: int) -> "Frame":
        return cls(data=np.zeros((height, width, CHANNELS), dtype=np.uint8))


@dataclass(frozen=True)
class CompositorConfig:
    """Completed, immutable configuration for one generation run."""

    timeline_width: int
    timeline_height: int
    thumbnail_width: int
    thumbnail_height: int
    max_grid_width: int
    max_grid_height: int
    policy: CompositingPolicy = CompositingPolicy.LAST_WRITER_WINS
    early_stop: bool = True


@dataclass(frozen=True)
class PartialConfig:
    """Configuration as declared by the caller, before the source is probed.

    The thumbnail width depends on the video's aspect ratio, so it is only
    known once a frame source reports it; :meth:`complete` derives it.
    """

    timeline_width: int = 1000
    timeline_height: int = 100
    thumbnail_height: int = 90
    max_grid_width: int = 1000
    max_grid_height: int = 1000
    policy: CompositingPolicy = CompositingPolicy.LAST_WRITER_WINS
    early_stop: bool = True

    def decode_height(self, with_thumbnails: bool = True) -> int:
        """Frame height to decode at, so neither output is upsampled from a smaller frame."""
        if not with_thumbnails:
            return int(self.timeline_height)
        return max(int(self.timeline_height), int(self.thumbnail_height))

    def complete(self, aspect_ratio: float) -> CompositorConfig:
        if not aspect_ratio or aspect_ratio <= 0 or not np.isfinite(aspect_ratio):
            raise InvalidConfigError(f"Aspect ratio must be positive, got {aspect_ratio!r}")
        for name in ("timeline_width", "timeline_height", "thumbnail_height", "max_grid_width", "max_grid_height"):
            if int(getattr(self, name)) < 1:
                raise InvalidConfigError(f"{name} must be at least 1")

        thumbnail_width = int(self.thumbnail_height * aspect_ratio + 1e-6)
        if thumbnail_width < 1:
            raise InvalidConfigError(
                f"Thumbnail width collapsed to 0 (height={self.thumbnail_height}, aspect={aspect_ratio:.4f})"
            )
        if thumbnail_width > self.max_grid_width or self.thumbnail_height > self.max_grid_height:
            raise InvalidConfigError(
                f"Thumbnail {thumbnail_width}x{self.thumbnail_height} does not fit into "
                f"grid budget {self.max_grid_width}x{self.max_grid_height}"
            )

        return CompositorConfig(
            timeline_width=int(self.timeline_width),
            timeline_height=int(self.timeline_height),
            thumbnail_width=thumbnail_width,
            thumbnail_height=int(self.thumbnail_height),
            max_grid_width=int(self.max_grid_width),
            max_grid_height=int(self.max_grid_height),
            policy=CompositingPolicy(self.policy),
            early_stop=bool(self.early_stop),
        )


@dataclass(frozen=True)
class GridPlacement:
    """Where a thumbnail index lands: grid file number, cell and pixel offset."""

    file: int
    row: int
    column: int
    x: int
    y: int


@dataclass(frozen=True)
class ManifestEntry:
    from_ms: int
    to_ms: int
    filename: str
    x: int
    y: int
    width: int
    height: int


@dataclass
class GenerationResult:
    """Rasters and bookkeeping produced by one generator run."""

    config: CompositorConfig
    duration_seconds: float
    timeline: np.ndarray
    grids: List[np.ndarray]
    done: np.ndarray
    frames_seen: int = 0
    frames_dropped: int = 0
    stopped_early: bool = False
    summary: Dict[str, object] = field(default_factory=dict)

    @property
    def columns_filled(self) -> int:
        return int(np.count_nonzero(self.done))
