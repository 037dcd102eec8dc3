"""Mapping of presentation timestamps onto timeline columns."""
from __future__ import annotations

import math
from typing import Optional

from .types import Frame, TimestripError


class MissingTimestampError(TimestripError):
    """Raised when a frame arrives without a presentation timestamp."""

    def __init__(self, frame_index: int = -1) -> None:
        super().__init__(f"Frame {frame_index} has no presentation timestamp")
        self.frame_index = frame_index


class InvalidDurationError(TimestripError):
    """Raised when the stream duration is not a positive number of seconds."""

    def __init__(self, duration: object) -> None:
        super().__init__(f"Stream duration must be positive, got {duration!r}")
        self.duration = duration


def _check_duration(duration: float) -> float:
    try:
        value = float(duration)
    except (TypeError, ValueError):
        raise InvalidDurationError(duration) from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidDurationError(duration)
    return value


def bucket_index(timestamp: Optional[float], duration: float, width: int, frame_index: int = -1) -> int:
    """Return ``min(floor(width * t / duration), width - 1)``.

    Boundaries round down; timestamps at or past the end clamp to the last
    column and negative ones to the first.
    """
    if timestamp is None:
        raise MissingTimestampError(frame_index)
    seconds = float(timestamp)
    if math.isnan(seconds):
        raise MissingTimestampError(frame_index)
    total = _check_duration(duration)
    if width < 1:
        raise ValueError("width must be at least 1")
    if math.isinf(seconds):
        return width - 1 if seconds > 0 else 0

    index = math.floor(width * seconds / total)
    return max(0, min(index, width - 1))


class BucketMapper:
    """Bucket mapper bound to one stream duration and column count."""

    def __init__(self, duration: float, width: int) -> None:
        self._duration = _check_duration(duration)
        if width < 1:
            raise ValueError("width must be at least 1")
        self._width = int(width)

    @property
    def width(self) -> int:
        return self._width

    @property
    def duration(self) -> float:
        return self._duration

    def index_for(self, frame: Frame) -> int:
        return bucket_index(frame.timestamp_seconds, self._duration, self._width, frame.frame_index)
