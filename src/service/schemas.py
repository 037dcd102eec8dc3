"""Pydantic models validating user-facing Timestrip options."""
from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from src.pipeline.output import IMAGE_EXTENSIONS
from src.pipeline.types import CompositingPolicy, PartialConfig

from .config import (
    BACKEND,
    JPEG_QUALITY,
    MAX_DIMENSION,
    MAX_GRID_HEIGHT,
    MAX_GRID_WIDTH,
    MIN_DIMENSION,
    POLICY,
    THUMBNAIL_HEIGHT,
    TIMELINE_HEIGHT,
    TIMELINE_WIDTH,
)

MANIFEST_EXTENSION = ".vtt"


def _same_file(first: str, second: str) -> bool:
    return Path(first).expanduser().resolve() == Path(second).expanduser().resolve()


class RenderOptions(BaseModel):
    """Everything one timeline/thumbnail run needs, validated up front."""

    input_path: str = Field(..., description="Video file to read frames from")
    timeline_width: int = Field(TIMELINE_WIDTH, ge=MIN_DIMENSION, le=MAX_DIMENSION, description="Timeline width in pixels")
    timeline_height: int = Field(TIMELINE_HEIGHT, ge=MIN_DIMENSION, le=MAX_DIMENSION, description="Timeline height in pixels")
    thumbnail_height: int = Field(THUMBNAIL_HEIGHT, ge=MIN_DIMENSION, le=MAX_DIMENSION, description="Height of one thumbnail")
    max_grid_width: int = Field(MAX_GRID_WIDTH, ge=MIN_DIMENSION, le=MAX_DIMENSION)
    max_grid_height: int = Field(MAX_GRID_HEIGHT, ge=MIN_DIMENSION, le=MAX_DIMENSION)
    timeline_path: Optional[str] = Field(None, description="Timeline image output (.jpg|.jpeg|.png)")
    manifest_path: Optional[str] = Field(
        None,
        description="WebVTT manifest output; thumbnail grids are written beside it",
    )
    thumbnail_format: Literal["jpg", "jpeg", "png"] = "jpg"
    policy: CompositingPolicy = Field(CompositingPolicy(POLICY))
    backend: Literal["auto", "opencv", "ffmpeg"] = Field(BACKEND)  # type: ignore[assignment]
    seek_mode: bool = False
    early_stop: bool = True
    jpeg_quality: int = Field(JPEG_QUALITY, ge=1, le=100)
    report_dir: Optional[str] = None

    @field_validator("input_path")
    @classmethod
    def _input_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("input file name must not be empty")
        return value

    @field_validator("timeline_path")
    @classmethod
    def _timeline_extension(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if Path(value).suffix.lower() not in IMAGE_EXTENSIONS:
            raise ValueError(f"timeline file '{value}' must end in one of {sorted(IMAGE_EXTENSIONS)}")
        return value

    @field_validator("manifest_path")
    @classmethod
    def _manifest_extension(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if Path(value).suffix.lower() != MANIFEST_EXTENSION:
            raise ValueError(f"thumbnails manifest '{value}' must end in {MANIFEST_EXTENSION}")
        return value

    @model_validator(mode="after")
    def _default_outputs_and_collisions(self) -> "RenderOptions":
        if self.timeline_path is None and self.manifest_path is None:
            self.timeline_path = f"{self.input_path}.timeline.jpg"
        for output in (self.timeline_path, self.manifest_path):
            if output is not None and _same_file(output, self.input_path):
                raise ValueError(f"Refusing to overwrite '{self.input_path}'")
        if self.timeline_path is not None and self.manifest_path is not None:
            if _same_file(self.timeline_path, self.manifest_path):
                raise ValueError("timeline and thumbnails outputs must be different files")
        return self

    def to_partial_config(self) -> PartialConfig:
        return PartialConfig(
            timeline_width=self.timeline_width,
            timeline_height=self.timeline_height,
            thumbnail_height=self.thumbnail_height,
            max_grid_width=self.max_grid_width,
            max_grid_height=self.max_grid_height,
            policy=self.policy,
            early_stop=self.early_stop,
        )
