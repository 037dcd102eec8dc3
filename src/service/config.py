"""Runtime configuration for Timestrip."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

_BASE_DIR = Path(os.environ.get("TIMESTRIP_BASE_DIR", ".")).resolve()

TIMELINE_WIDTH = int(os.environ.get("TIMESTRIP_TIMELINE_WIDTH", "1000"))
TIMELINE_HEIGHT = int(os.environ.get("TIMESTRIP_TIMELINE_HEIGHT", "100"))
THUMBNAIL_HEIGHT = int(os.environ.get("TIMESTRIP_THUMBNAIL_HEIGHT", "90"))
MAX_GRID_WIDTH = int(os.environ.get("TIMESTRIP_MAX_GRID_WIDTH", "1000"))
MAX_GRID_HEIGHT = int(os.environ.get("TIMESTRIP_MAX_GRID_HEIGHT", "1000"))
JPEG_QUALITY = int(os.environ.get("TIMESTRIP_JPEG_QUALITY", "90"))
BACKEND = os.environ.get("TIMESTRIP_BACKEND", "auto")
POLICY = os.environ.get("TIMESTRIP_POLICY", "last")

_report_dir = os.environ.get("TIMESTRIP_REPORT_DIR", "")
REPORT_DIR: Optional[Path] = Path(_report_dir).resolve() if _report_dir else None
MAX_REPORT_FILES = int(os.environ.get("TIMESTRIP_MAX_REPORT_FILES", "200"))
MAX_REPORT_BYTES = int(os.environ.get("TIMESTRIP_MAX_REPORT_BYTES", str(20 * 1024 * 1024)))

MIN_DIMENSION = 16
MAX_DIMENSION = 65500


def ensure_dirs(report_dir: Optional[Path] = None) -> Optional[Path]:
    target = report_dir or REPORT_DIR
    if target is None:
        return None
    if not target.is_absolute():
        target = _BASE_DIR / target
    target.mkdir(parents=True, exist_ok=True)
    return target


__all__ = [
    "TIMELINE_WIDTH",
    "TIMELINE_HEIGHT",
    "THUMBNAIL_HEIGHT",
    "MAX_GRID_WIDTH",
    "MAX_GRID_HEIGHT",
    "JPEG_QUALITY",
    "BACKEND",
    "POLICY",
    "REPORT_DIR",
    "MAX_REPORT_FILES",
    "MAX_REPORT_BYTES",
    "MIN_DIMENSION",
    "MAX_DIMENSION",
    "ensure_dirs",
]
