"""Box-filter downsampling of frames."""
from __future__ import annotations

import cv2
import numpy as np

from .types import CHANNELS, OPAQUE, Frame, TimestripError


class BufferUnavailableError(TimestripError):
    """Raised when a frame's pixel buffer cannot be read."""

    def __init__(self, message: str, frame_index: int = -1) -> None:
        super().__init__(f"Frame {frame_index}: {message}")
        self.frame_index = frame_index


def _pixels(frame: Frame) -> np.ndarray:
    data = frame.data
    if data is None:
        raise BufferUnavailableError("no pixel data", frame.frame_index)
    if not isinstance(data, np.ndarray) or data.ndim != 3 or data.shape[2] < 3:
        shape = getattr(data, "shape", None)
        raise BufferUnavailableError(f"expected (h, w, 3|4) pixel array, got shape {shape}", frame.frame_index)
    if data.shape[0] == 0 or data.shape[1] == 0:
        raise BufferUnavailableError("empty pixel buffer", frame.frame_index)
    return data


def _with_alpha(bgr: np.ndarray) -> np.ndarray:
    out = np.empty(bgr.shape[:2] + (CHANNELS,), dtype=np.uint8)
    out[:, :, :3] = bgr
    out[:, :, 3] = OPAQUE
    return out


def collapse_to_column(frame: Frame) -> Frame:
    """Average every row down to a single pixel (truncating integer mean)."""
    data = _pixels(frame)
    width = data.shape[1]
    sums = data[:, :, :3].astype(np.uint64).sum(axis=1)
    column = (sums // width).astype(np.uint8).reshape(data.shape[0], 1, 3)
    return Frame(data=_with_alpha(column), timestamp_seconds=frame.timestamp_seconds, frame_index=frame.frame_index)


def resample_rows(frame: Frame, height: int) -> Frame:
    """Resample to ``height`` rows by averaging source rows ``[from, to)``.

    ``from = floor(f*y)`` and ``to = floor(f*(y+1))`` with ``f = H_in / H_out``;
    when both coincide the single row ``from`` is used.
    """
    if height < 1:
        raise ValueError("height must be at least 1")
    data = _pixels(frame)
    src_height = data.shape[0]

    factor = src_height / height
    rows = np.arange(height, dtype=np.float64)
    starts = np.floor(factor * rows).astype(np.int64)
    ends = np.floor(factor * (rows + 1)).astype(np.int64)
    ends = np.where(ends == starts, starts + 1, ends)
    starts = np.minimum(starts, src_height - 1)
    ends = np.minimum(ends, src_height)

    cumulative = np.zeros((src_height + 1,) + data.shape[1:2] + (3,), dtype=np.uint64)
    np.cumsum(data[:, :, :3], axis=0, dtype=np.uint64, out=cumulative[1:])
    sums = cumulative[ends] - cumulative[starts]
    counts = (ends - starts).reshape(-1, 1, 1).astype(np.uint64)
    resampled = (sums // counts).astype(np.uint8)
    return Frame(data=_with_alpha(resampled), timestamp_seconds=frame.timestamp_seconds, frame_index=frame.frame_index)


def scale_column(frame: Frame, height: int) -> Frame:
    """Collapse a frame to one pixel column of ``height`` rows."""
    return resample_rows(collapse_to_column(frame), height)


def scale_frame(frame: Frame, width: int, height: int) -> Frame:
    """Scale a frame to ``width`` x ``height`` with box-style averaging.

    Width 1 goes through the exact column path; other sizes use OpenCV's
    area interpolation. The source timestamp is carried over unchanged.
    """
    if width < 1 or height < 1:
        raise ValueError("target size must be at least 1x1")
    if width == 1:
        return scale_column(frame, height)

    data = _pixels(frame)
    if data.shape[1] == width and data.shape[0] == height:
        return Frame(data=_with_alpha(data[:, :, :3]), timestamp_seconds=frame.timestamp_seconds, frame_index=frame.frame_index)
    try:
        resized = cv2.resize(np.ascontiguousarray(data[:, :, :3]), (width, height), interpolation=cv2.INTER_AREA)
    except cv2.error as error:
        raise BufferUnavailableError(f"resize failed: {error}", frame.frame_index) from error
    return Frame(data=_with_alpha(resized), timestamp_seconds=frame.timestamp_seconds, frame_index=frame.frame_index)
