from __future__ import annotations

import math

import pytest

from src.pipeline.types import CompositingPolicy, InvalidConfigError, PartialConfig, TimestripError


def test_complete_derives_thumbnail_width() -> None:
    config = PartialConfig(thumbnail_height=120, policy="first").complete(4 / 3)
    assert config.thumbnail_width == 160
    assert config.policy is CompositingPolicy.FIRST_WRITER_WINS
    assert PartialConfig(thumbnail_height=90).complete(16 / 9).thumbnail_width == 160
    assert PartialConfig(thumbnail_height=100).complete(1.999).thumbnail_width == 199


@pytest.mark.parametrize("aspect", [0.0, -1.5, math.nan, math.inf])
def test_complete_rejects_bad_aspect_ratio(aspect: float) -> None:
    with pytest.raises(InvalidConfigError, match="Aspect ratio"):
        PartialConfig().complete(aspect)


@pytest.mark.parametrize(
    "field", ["timeline_width", "timeline_height", "thumbnail_height", "max_grid_width", "max_grid_height"]
)
def test_complete_rejects_dimension_below_one(field: str) -> None:
    with pytest.raises(InvalidConfigError, match=field):
        PartialConfig(**{field: 0}).complete(1.0)


def test_complete_rejects_thumbnail_collapsing_to_zero_width() -> None:
    with pytest.raises(InvalidConfigError, match="collapsed"):
        PartialConfig(thumbnail_height=2).complete(0.25)


@pytest.mark.parametrize(
    "overrides, aspect",
    [
        ({"thumbnail_height": 100, "max_grid_width": 150}, 2.0),
        ({"thumbnail_height": 100, "max_grid_height": 99}, 1.0),
    ],
)
def test_complete_rejects_thumbnail_larger_than_grid(overrides, aspect: float) -> None:
    with pytest.raises(InvalidConfigError, match="does not fit"):
        PartialConfig(**overrides).complete(aspect)


def test_invalid_config_is_a_timestrip_error() -> None:
    assert issubclass(InvalidConfigError, TimestripError)


def test_decode_height_covers_the_taller_output() -> None:
    assert PartialConfig(timeline_height=500, thumbnail_height=90).decode_height() == 500
    assert PartialConfig(timeline_height=40, thumbnail_height=90).decode_height() == 90
    assert PartialConfig(timeline_height=40, thumbnail_height=90).decode_height(with_thumbnails=False) == 40
