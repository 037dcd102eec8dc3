"""Frame source implementations backed by OpenCV or ffmpeg."""
from __future__ import annotations

import json
import logging
import math
import shutil
import subprocess
from fractions import Fraction
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .types import CHANNELS, Frame, TimestripError

FFMPEG_PATH = shutil.which("ffmpeg")
FFPROBE_PATH = shutil.which("ffprobe")
BACKENDS = ("auto", "opencv", "ffmpeg")


class FrameSourceError(TimestripError):
    """Raised when a frame source cannot be opened or probed."""


class FrameSource:
    """Pull interface over a finite stream of frames in unspecified order.

    Subclasses provide ``duration_seconds``, ``aspect_ratio`` and :meth:`read`,
    which returns ``None`` once the stream is exhausted. A source may be
    closed before it is exhausted.
    """

    duration_seconds: float = 0.0
    aspect_ratio: float = 1.0
    frame_size: Optional[Tuple[int, int]] = None

    def read(self) -> Optional[Frame]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __iter__(self) -> Iterator[Frame]:
        return self

    def __next__(self) -> Frame:
        frame = self.read()
        if frame is None:
            raise StopIteration
        return frame

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryFrameSource(FrameSource):
    """Serves prepared frames in the order given."""

    def __init__(self, frames: Iterable[Frame], duration_seconds: float, aspect_ratio: float = 1.0) -> None:
        self._frames = list(frames)
        self._position = 0
        self.duration_seconds = float(duration_seconds)
        self.aspect_ratio = float(aspect_ratio)
        self.closed = False

    @property
    def consumed(self) -> int:
        return self._position

    def read(self) -> Optional[Frame]:
        if self.closed or self._position >= len(self._frames):
            return None
        frame = self._frames[self._position]
        self._position += 1
        return frame

    def close(self) -> None:
        self.closed = True


def coarse_to_fine_order(count: int) -> List[int]:
    """Order ``range(count)`` by bit-reversed index so every prefix spreads evenly."""
    if count <= 1:
        return list(range(count))
    bits = max(1, math.ceil(math.log2(count)))

    def reversed_bits(value: int) -> int:
        return int(format(value, f"0{bits}b")[::-1], 2)

    return sorted(range(count), key=lambda index: (reversed_bits(index), index))


def _check_input(path: Path) -> Path:
    if path.is_dir():
        raise FrameSourceError(f"Input argument '{path}' is a directory. Please specify a file.")
    if not path.is_file():
        raise FrameSourceError(f"Input file '{path}' could not be found.")
    return path


def _output_width(output_height: int, aspect_ratio: float) -> int:
    return max(1, int(output_height * aspect_ratio + 1e-6))


def _to_bgrx(bgr: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    if bgr.shape[1] != size[0] or bgr.shape[0] != size[1]:
        bgr = cv2.resize(bgr, size, interpolation=cv2.INTER_AREA)
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2BGRA)


class OpenCVFrameSource(FrameSource):
    """Decodes a video with ``cv2.VideoCapture`` and scales frames to thumbnail size.

    In streaming mode frames are decoded in order and roughly ``target_frames``
    of them are emitted, evenly spread over the duration. In seek mode the
    source seeks to bucket centres in coarse-to-fine order instead.
    """

    def __init__(
        self,
        path: Path | str,
        output_height: int,
        target_frames: int,
        seek_mode: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = _check_input(Path(path))
        self._logger = logger or logging.getLogger(__name__)
        self._capture = cv2.VideoCapture(str(self._path))
        if not self._capture.isOpened():
            self._capture.release()
            raise FrameSourceError(f"Input file '{self._path}' could not be opened by OpenCV")

        try:
            width = self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)
            height = self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)
            fps = self._capture.get(cv2.CAP_PROP_FPS)
            frame_count = self._capture.get(cv2.CAP_PROP_FRAME_COUNT)
            if width <= 0 or height <= 0:
                raise FrameSourceError("This does not seem to be a video file.")
            if fps <= 0 or frame_count <= 0:
                raise FrameSourceError(f"Could not determine the duration of '{self._path}'")
            sar_num = self._capture.get(cv2.CAP_PROP_SAR_NUM)
            sar_den = self._capture.get(cv2.CAP_PROP_SAR_DEN)
        except FrameSourceError:
            self._capture.release()
            raise

        pixel_aspect = sar_num / sar_den if sar_num > 0 and sar_den > 0 else 1.0
        self._fps = float(fps)
        self.duration_seconds = float(frame_count) / self._fps
        self.aspect_ratio = float(width) * pixel_aspect / float(height)
        self.frame_size = (_output_width(output_height, self.aspect_ratio), int(output_height))

        self._target_frames = max(1, int(target_frames))
        self._seek_mode = bool(seek_mode)
        self._seek_order = coarse_to_fine_order(self._target_frames) if self._seek_mode else []
        self._decoded = 0
        self._emitted = 0
        self._next_target = 0.0
        self._closed = False
        self._logger.debug(
            "Opened %s: %.0fx%.0f @ %.3f fps, %.3fs, aspect %.4f, seek=%s",
            self._path,
            width,
            height,
            self._fps,
            self.duration_seconds,
            self.aspect_ratio,
            self._seek_mode,
        )

    def read(self) -> Optional[Frame]:
        if self._closed:
            return None
        if self._seek_mode:
            return self._read_seek()
        return self._read_stream()

    def _read_stream(self) -> Optional[Frame]:
        spacing = self.duration_seconds / self._target_frames
        while True:
            if not self._capture.grab():
                self.close()
                return None
            timestamp = self._decoded / self._fps
            self._decoded += 1
            if timestamp + 1e-9 < self._next_target:
                continue
            self._next_target = (math.floor(timestamp / spacing + 1e-9) + 1) * spacing
            ok, bgr = self._capture.retrieve()
            return self._emit(bgr if ok else None, timestamp)

    def _read_seek(self) -> Optional[Frame]:
        spacing = self.duration_seconds / self._target_frames
        while self._seek_order:
            bucket = self._seek_order.pop(0)
            timestamp = (bucket + 0.5) * spacing
            self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
            ok, bgr = self._capture.read()
            if not ok:
                self._logger.debug("Seek to %.3fs failed; skipping bucket %d", timestamp, bucket)
                continue
            return self._emit(bgr, timestamp)
        self.close()
        return None

    def _emit(self, bgr: Optional[np.ndarray], timestamp: float) -> Frame:
        data = _to_bgrx(bgr, self.frame_size) if bgr is not None else None
        frame = Frame(data=data, timestamp_seconds=timestamp, frame_index=self._emitted)
        self._emitted += 1
        return frame

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._capture.release()


def probe_video(path: Path, ffprobe: Optional[str] = None, timeout: float = 30.0) -> Tuple[int, int, Fraction, float]:
    """Return ``(width, height, sample_aspect_ratio, duration)`` as reported by ffprobe."""
    ffprobe = ffprobe or FFPROBE_PATH
    if not ffprobe:
        raise FrameSourceError("ffprobe executable not found in PATH")
    cmd = [
        ffprobe,
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height,sample_aspect_ratio,duration:format=duration",
        "-of",
        "json",
        str(path),
    ]
    try:
        completed = subprocess.run(cmd, check=True, timeout=timeout, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except subprocess.CalledProcessError as error:
        raise FrameSourceError(f"ffprobe failed for '{path}': {error.stderr.decode().strip()}") from error
    except subprocess.TimeoutExpired as error:
        raise FrameSourceError(f"ffprobe timed out for '{path}'") from error

    payload = json.loads(completed.stdout.decode("utf-8") or "{}")
    streams = payload.get("streams") or []
    if not streams:
        raise FrameSourceError("This does not seem to be a video file.")
    stream = streams[0]
    width = int(stream.get("width") or 0)
    height = int(stream.get("height") or 0)
    if width <= 0 or height <= 0:
        raise FrameSourceError("This does not seem to be a video file.")

    sar = Fraction(1, 1)
    raw_sar = str(stream.get("sample_aspect_ratio") or "")
    if ":" in raw_sar:
        num, _, den = raw_sar.partition(":")
        if num.isdigit() and den.isdigit() and int(num) > 0 and int(den) > 0:
            sar = Fraction(int(num), int(den))

    duration = 0.0
    for candidate in (stream.get("duration"), (payload.get("format") or {}).get("duration")):
        try:
            duration = float(candidate)
        except (TypeError, ValueError):
            continue
        if duration > 0:
            break
    if duration <= 0:
        raise FrameSourceError(f"Could not determine the duration of '{path}'")
    return width, height, sar, duration


class FFmpegFrameSource(FrameSource):
    """Streams raw BGRx frames from an ``ffmpeg`` child process.

    ffmpeg resamples the video to ``target_frames`` frames over its duration
    and scales them to thumbnail size; frame ``k`` has pts ``k * D / N``.
    """

    def __init__(
        self,
        path: Path | str,
        output_height: int,
        target_frames: int,
        logger: Optional[logging.Logger] = None,
        ffmpeg: Optional[str] = None,
        ffprobe: Optional[str] = None,
    ) -> None:
        self._path = _check_input(Path(path))
        self._logger = logger or logging.getLogger(__name__)
        self._ffmpeg = ffmpeg or FFMPEG_PATH
        if not self._ffmpeg:
            raise FrameSourceError("ffmpeg executable not found in PATH")

        width, height, sar, duration = probe_video(self._path, ffprobe)
        self.duration_seconds = duration
        self.aspect_ratio = float(width * sar) / float(height)
        self.frame_size = (_output_width(output_height, self.aspect_ratio), int(output_height))
        self._target_frames = max(1, int(target_frames))
        self._frame_bytes = self.frame_size[0] * self.frame_size[1] * CHANNELS
        self._emitted = 0
        self._process: Optional[subprocess.Popen] = None
        self._closed = False

    def _command(self) -> Sequence[str]:
        out_width, out_height = self.frame_size
        rate = f"{self._target_frames * 1000}/{max(1, round(self.duration_seconds * 1000))}"
        return [
            self._ffmpeg,
            "-hide_banner",
            "-loglevel",
            "error",
            "-nostdin",
            "-i",
            str(self._path),
            "-an",
            "-vf",
            f"fps={rate},scale={out_width}:{out_height}:flags=area",
            "-pix_fmt",
            "bgra",
            "-f",
            "rawvideo",
            "pipe:1",
        ]

    def read(self) -> Optional[Frame]:
        if self._closed:
            return None
        if self._process is None:
            self._logger.debug("Starting ffmpeg for %s", self._path)
            self._process = subprocess.Popen(self._command(), stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)

        assert self._process.stdout is not None
        payload = self._process.stdout.read(self._frame_bytes)
        if len(payload) < self._frame_bytes:
            status = self._reap()
            if status:
                raise FrameSourceError(
                    f"ffmpeg exited with status {status} after {self._emitted} frame(s) of '{self._path}'"
                )
            return None

        out_width, out_height = self.frame_size
        data = np.frombuffer(payload, dtype=np.uint8).reshape(out_height, out_width, CHANNELS).copy()
        timestamp = self._emitted * self.duration_seconds / self._target_frames
        frame = Frame(data=data, timestamp_seconds=timestamp, frame_index=self._emitted)
        self._emitted += 1
        return frame

    def _reap(self) -> Optional[int]:
        """Wait for ffmpeg once its output has ended; returns its exit status."""
        self._closed = True
        process = self._process
        assert process is not None
        if process.stdout is not None:
            process.stdout.close()
        try:
            return process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self._logger.warning("ffmpeg closed its output but did not exit; killing it")
            process.kill()
            process.wait()
            return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        process = self._process
        if process is None:
            return
        if process.stdout is not None:
            process.stdout.close()
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._logger.warning("ffmpeg did not exit after terminate; killing it")
                process.kill()
                process.wait()


def open_frame_source(
    path: Path | str,
    output_height: int,
    target_frames: int,
    backend: str = "auto",
    seek_mode: bool = False,
    logger: Optional[logging.Logger] = None,
) -> FrameSource:
    """Open ``path`` with the requested backend (``auto`` | ``opencv`` | ``ffmpeg``)."""
    logger = logger or logging.getLogger(__name__)
    choice = backend.lower()
    if choice not in BACKENDS:
        raise FrameSourceError(f"Unsupported frame source backend '{backend}'")
    _check_input(Path(path))

    if choice == "ffmpeg":
        if seek_mode:
            logger.warning("Seek mode is only supported by the OpenCV backend; streaming instead")
        return FFmpegFrameSource(path, output_height, target_frames, logger=logger)

    try:
        return OpenCVFrameSource(path, output_height, target_frames, seek_mode=seek_mode, logger=logger)
    except FrameSourceError as error:
        if choice == "opencv" or not FFMPEG_PATH:
            raise
        logger.warning("OpenCV could not open %s: %s; falling back to ffmpeg", path, error)
    return FFmpegFrameSource(path, output_height, target_frames, logger=logger)
