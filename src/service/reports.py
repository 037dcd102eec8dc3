"""JSON run reports for Timestrip."""
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from src.pipeline.types import GenerationResult

from .config import MAX_REPORT_BYTES, MAX_REPORT_FILES
from .rotation import enforce_log_rotation

REPORT_SCHEMA_VERSION = "1.0"

logger = logging.getLogger("timestrip.reports")


def _utcnow() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_report(
    input_path: str,
    result: GenerationResult,
    outputs: Dict[str, object],
    run_id: Optional[str] = None,
) -> Dict[str, object]:
    config = result.config
    return {
        "schema_version": REPORT_SCHEMA_VERSION,
        "run_id": run_id or uuid.uuid4().hex,
        "created_at": _utcnow(),
        "input": str(input_path),
        "duration_seconds": round(float(result.duration_seconds), 3),
        "config": {
            "timeline_width": config.timeline_width,
            "timeline_height": config.timeline_height,
            "thumbnail_width": config.thumbnail_width,
            "thumbnail_height": config.thumbnail_height,
            "max_grid_width": config.max_grid_width,
            "max_grid_height": config.max_grid_height,
            "policy": config.policy.value,
            "early_stop": config.early_stop,
        },
        "summary": dict(result.summary),
        "outputs": outputs,
    }


def write_report(
    report_dir: Path,
    report: Dict[str, object],
    max_files: int = MAX_REPORT_FILES,
    max_bytes: int = MAX_REPORT_BYTES,
) -> Path:
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / f"timestrip_{report['run_id']}.json"
    tmp_path = path.with_suffix(".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(report, handle, ensure_ascii=False, indent=2)
    tmp_path.replace(path)
    removed = enforce_log_rotation(report_dir, max_files, max_bytes)
    if removed:
        logger.debug("Pruned %d old report(s) from %s", removed, report_dir)
    return path


def list_reports(report_dir: Path) -> List[Path]:
    if not report_dir.exists():
        return []
    return sorted(report_dir.glob("timestrip_*.json"), key=lambda path: path.stat().st_mtime)
