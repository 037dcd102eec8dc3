"""Retention helpers for Timestrip run reports."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

REPORT_SUFFIXES = {".json"}


def _collect_report_files(report_dir: Path) -> List[Path]:
    candidates: List[Path] = []
    if not report_dir.exists():
        return candidates
    for entry in report_dir.iterdir():
        if not entry.is_file():
            continue
        if entry.suffix.lower() not in REPORT_SUFFIXES:
            continue
        candidates.append(entry)
    return candidates


def _total_size(paths: Iterable[Path]) -> int:
    size = 0
    for path in paths:
        try:
            size += path.stat().st_size
        except OSError:
            continue
    return size


def enforce_log_rotation(report_dir: Path, max_files: int, max_bytes: int) -> int:
    """Delete the oldest reports until both limits hold; returns how many were removed."""
    if max_files <= 0 and max_bytes <= 0:
        return 0

    files = _collect_report_files(report_dir)
    if not files:
        return 0

    files.sort(key=lambda path: (path.stat().st_mtime, path.name))
    removed = 0

    def drop_oldest() -> bool:
        nonlocal removed
        victim = files.pop(0)
        try:
            victim.unlink()
        except FileNotFoundError:
            return True
        except OSError:
            return False
        removed += 1
        return True

    if max_files > 0:
        while len(files) > max_files:
            if not drop_oldest():
                break

    if max_bytes > 0:
        while files and _total_size(files) > max_bytes:
            if not drop_oldest():
                break

    return removed


__all__ = ["enforce_log_rotation"]
