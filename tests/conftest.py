from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest


def _write_test_video(
    path: Path,
    frames: int = 20,
    fps: float = 10.0,
    size=(32, 24),
    vertical_gradient: bool = False,
) -> Path:
    width, height = size
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, (width, height))
    if not writer.isOpened():
        pytest.skip("OpenCV cannot write MJPG/AVI in this environment")
    rows = (np.arange(height, dtype=np.uint32) * 255 // max(1, height - 1)).astype(np.uint8)
    try:
        for index in range(frames):
            image = np.zeros((height, width, 3), dtype=np.uint8)
            image[:, :, 2] = int(255 * index / max(1, frames - 1))
            image[:, :, 0] = 255 - image[:, :, 2]
            if vertical_gradient:
                image[:, :, 1] = rows[:, None]
            writer.write(image)
    finally:
        writer.release()
    return path


@pytest.fixture
def test_video(tmp_path) -> Path:
    """A 2 second, 10 fps, 32x24 red-to-blue ramp."""
    return _write_test_video(tmp_path / "clip.avi")


@pytest.fixture
def gradient_video(tmp_path) -> Path:
    """Like ``test_video`` but 32x64, with green rising from top to bottom."""
    return _write_test_video(tmp_path / "gradient.avi", size=(32, 64), vertical_gradient=True)
