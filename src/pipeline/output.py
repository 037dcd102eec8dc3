"""Serialization of generated rasters and the thumbnail manifest."""
from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import cv2
import numpy as np

from .grid import GridLayout
from .manifest import build_manifest, grid_filename, write_manifest
from .types import GenerationResult, TimestripError

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
DEFAULT_JPEG_QUALITY = 90


class ImageWriteError(TimestripError):
    """Raised when a raster cannot be encoded or written."""


def encode_image(data: np.ndarray, extension: str, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    suffix = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
    if suffix not in IMAGE_EXTENSIONS:
        raise ImageWriteError(f"Unsupported image format '{extension}'")
    if suffix == ".png":
        pixels, params = data, []
    else:
        pixels = np.ascontiguousarray(data[:, :, :3])
        params = [int(cv2.IMWRITE_JPEG_QUALITY), int(max(1, min(100, quality)))]
    ok, encoded = cv2.imencode(suffix, pixels, params)
    if not ok:
        raise ImageWriteError(f"Could not encode {pixels.shape[1]}x{pixels.shape[0]} image as {suffix}")
    return encoded.tobytes()


def write_image(path: Path, data: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> Path:
    path = Path(path)
    payload = encode_image(data, path.suffix, quality)
    try:
        path.write_bytes(payload)
    except OSError as error:
        raise ImageWriteError(f"Could not create '{path}': {error.strerror or error}") from error
    return path


def write_thumbnails(
    result: GenerationResult,
    manifest_path: Path,
    extension: str = "jpg",
    quality: int = DEFAULT_JPEG_QUALITY,
) -> Tuple[Path, List[Path]]:
    """Write grid images beside ``manifest_path`` and the manifest pointing at them."""
    manifest_path = Path(manifest_path)
    base_name = manifest_path.stem
    layout = GridLayout.from_config(result.config)
    if len(result.grids) != layout.grid_count:
        raise ImageWriteError(f"Expected {layout.grid_count} grid(s), got {len(result.grids)}")

    grid_paths: List[Path] = []
    for file, grid in enumerate(result.grids):
        target = manifest_path.with_name(grid_filename(base_name, file, extension))
        grid_paths.append(write_image(target, grid, quality))

    entries = build_manifest(
        result.duration_seconds,
        layout,
        result.config.timeline_width,
        base_name,
        extension,
    )
    write_manifest(manifest_path, entries)
    return manifest_path, grid_paths
