"""WebVTT manifest mapping time ranges to thumbnail regions."""
from __future__ import annotations

import math
from pathlib import Path
from typing import Iterable, List, Sequence

from .grid import GridLayout
from .types import ManifestEntry, TimestripError

MANIFEST_HEADER = "WEBVTT\n\n"


class ManifestWriteError(TimestripError):
    """Raised when the manifest file cannot be written."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not write manifest '{path}': {reason}")
        self.path = path


def format_timestamp(milliseconds: int) -> str:
    """Format milliseconds as ``[H:]MM:SS.mmm``; the hour field is omitted when zero."""
    total = int(milliseconds)
    if total < 0:
        raise ValueError(f"timestamp must be non-negative, got {milliseconds}")
    seconds_total, millis = divmod(total, 1000)
    minutes_total, seconds = divmod(seconds_total, 60)
    hours, minutes = divmod(minutes_total, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}.{millis:03d}"
    return f"{minutes:02d}:{seconds:02d}.{millis:03d}"


def grid_filename(base_name: str, file: int, extension: str = "jpg") -> str:
    """``<base>-<NN>.<ext>`` with a 1-based, zero-padded grid number."""
    return f"{base_name}-{file + 1:02d}.{extension.lstrip('.')}"


def duration_ms(duration_seconds: float) -> int:
    return int(math.floor(float(duration_seconds) * 1000))


def build_manifest(
    duration_seconds: float,
    layout: GridLayout,
    width: int,
    base_name: str,
    extension: str = "jpg",
) -> List[ManifestEntry]:
    total_ms = duration_ms(duration_seconds)
    entries: List[ManifestEntry] = []
    for index in range(width):
        placement = layout.place(index)
        entries.append(
            ManifestEntry(
                from_ms=total_ms * index // width,
                to_ms=total_ms * (index + 1) // width,
                filename=grid_filename(base_name, placement.file, extension),
                x=placement.x,
                y=placement.y,
                width=layout.thumbnail_width,
                height=layout.thumbnail_height,
            )
        )
    return entries


def render_manifest(entries: Iterable[ManifestEntry]) -> str:
    blocks = [MANIFEST_HEADER]
    for entry in entries:
        blocks.append(
            f"{format_timestamp(entry.from_ms)} --> {format_timestamp(entry.to_ms)}\n"
            f"{entry.filename}?xywh={entry.x},{entry.y},{entry.width},{entry.height}\n\n"
        )
    return "".join(blocks)


def write_manifest(path: Path, entries: Sequence[ManifestEntry]) -> Path:
    path = Path(path)
    try:
        path.write_text(render_manifest(entries), encoding="utf-8")
    except OSError as error:
        raise ManifestWriteError(path, error.strerror or str(error)) from error
    return path
