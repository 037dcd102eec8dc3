"""Timeline and thumbnail compositing pipeline for Timestrip."""

__version__ = "0.1.0"

from .buckets import BucketMapper, InvalidDurationError, MissingTimestampError, bucket_index
from .compositor import PolicyWriter, RasterBuffer, TimelineCompositor
from .generator import TimelineGenerator
from .grid import GridIndexOutOfRangeError, GridLayout, GridPacker
from .manifest import ManifestWriteError, build_manifest, format_timestamp, grid_filename, render_manifest, write_manifest
from .output import ImageWriteError, write_image, write_thumbnails
from .scaler import BufferUnavailableError, collapse_to_column, resample_rows, scale_column, scale_frame
from .sources import (
    FFmpegFrameSource,
    FrameSource,
    FrameSourceError,
    MemoryFrameSource,
    OpenCVFrameSource,
    open_frame_source,
)
from .tracker import CompletionTracker, TrackerState
from .types import (
    CompositingPolicy,
    CompositorConfig,
    Frame,
    GenerationResult,
    GridPlacement,
    InvalidConfigError,
    ManifestEntry,
    PartialConfig,
    TimestripError,
)

__all__ = [
    "BucketMapper",
    "InvalidDurationError",
    "MissingTimestampError",
    "bucket_index",
    "PolicyWriter",
    "RasterBuffer",
    "TimelineCompositor",
    "TimelineGenerator",
    "GridIndexOutOfRangeError",
    "GridLayout",
    "GridPacker",
    "ManifestWriteError",
    "build_manifest",
    "format_timestamp",
    "grid_filename",
    "render_manifest",
    "write_manifest",
    "ImageWriteError",
    "write_image",
    "write_thumbnails",
    "BufferUnavailableError",
    "collapse_to_column",
    "resample_rows",
    "scale_column",
    "scale_frame",
    "FFmpegFrameSource",
    "FrameSource",
    "FrameSourceError",
    "MemoryFrameSource",
    "OpenCVFrameSource",
    "open_frame_source",
    "CompletionTracker",
    "TrackerState",
    "CompositingPolicy",
    "CompositorConfig",
    "Frame",
    "GenerationResult",
    "GridPlacement",
    "InvalidConfigError",
    "ManifestEntry",
    "PartialConfig",
    "TimestripError",
]
