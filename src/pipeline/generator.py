"""The frame-to-output pull loop."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .buckets import BucketMapper
from .compositor import TimelineCompositor
from .grid import GridLayout, GridPacker
from .scaler import BufferUnavailableError, scale_column, scale_frame
from .sources import FrameSource
from .tracker import CompletionTracker, TrackerState
from .types import CompositorConfig, GenerationResult, PartialConfig

ProgressCallback = Callable[[float], None]


class TimelineGenerator:
    """Pulls frames from a source and composites the timeline and thumbnail grids."""

    def __init__(
        self,
        config: PartialConfig | CompositorConfig,
        logger: Optional[logging.Logger] = None,
        with_thumbnails: bool = True,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._with_thumbnails = with_thumbnails
        self._progress = progress

    def resolve_config(self, source: FrameSource) -> CompositorConfig:
        if isinstance(self._config, CompositorConfig):
            return self._config
        return self._config.complete(source.aspect_ratio)

    def generate(self, source: FrameSource) -> GenerationResult:
        try:
            return self._generate(source)
        finally:
            source.close()

    def _generate(self, source: FrameSource) -> GenerationResult:
        config = self.resolve_config(source)
        width = config.timeline_width
        mapper = BucketMapper(source.duration_seconds, width)
        timeline = TimelineCompositor(width, config.timeline_height, config.policy, self._logger)
        packer: Optional[GridPacker] = None
        if self._with_thumbnails:
            packer = GridPacker(GridLayout.from_config(config), config.policy, self._logger)
        tracker = CompletionTracker(width)

        self._logger.debug(
            "Generating %dx%d timeline from %.3fs of video (thumbnails %dx%d, policy=%s)",
            width,
            config.timeline_height,
            mapper.duration,
            config.thumbnail_width,
            config.thumbnail_height,
            config.policy.value,
        )

        started = time.monotonic()
        frames_seen = 0
        frames_dropped = 0
        stopped_early = False

        for frame in source:
            frames_seen += 1
            index = mapper.index_for(frame)

            try:
                column = scale_column(frame, config.timeline_height)
                thumbnail = (
                    scale_frame(frame, config.thumbnail_width, config.thumbnail_height) if packer else None
                )
            except BufferUnavailableError as error:
                frames_dropped += 1
                self._logger.warning("Dropping frame for column %d: %s", index, error)
                continue

            timeline.compose(column, index)
            if packer is not None and thumbnail is not None:
                packer.pack(thumbnail, index)

            state = tracker.record(index)
            self._logger.debug(
                "Frame %d pts=%.3fs -> column %d (%d/%d filled)",
                frame.frame_index,
                frame.timestamp_seconds,
                index,
                tracker.filled,
                width,
            )
            if self._progress is not None:
                self._progress(tracker.progress)

            if state is TrackerState.DONE and config.early_stop:
                stopped_early = True
                self._logger.debug("Every column filled after %d frames; stopping early", frames_seen)
                break
        else:
            tracker.finish()

        elapsed = time.monotonic() - started
        missing = tracker.missing()
        if missing:
            self._logger.warning("%d of %d columns received no frame", len(missing), width)

        summary = {
            "frames_seen": frames_seen,
            "frames_dropped": frames_dropped,
            "columns_filled": tracker.filled,
            "columns_missing": len(missing),
            "stopped_early": stopped_early,
            "elapsed_sec": round(elapsed, 3),
            "policy": config.policy.value,
        }
        self._logger.info(
            "Composited %d frames into %d/%d columns in %.2fs (dropped=%d, early_stop=%s)",
            frames_seen,
            tracker.filled,
            width,
            elapsed,
            frames_dropped,
            stopped_early,
        )

        return GenerationResult(
            config=config,
            duration_seconds=mapper.duration,
            timeline=timeline.buffer.data,
            grids=packer.images() if packer else [],
            done=tracker.done.copy(),
            frames_seen=frames_seen,
            frames_dropped=frames_dropped,
            stopped_early=stopped_early,
            summary=summary,
        )
