"""Tests for viewport partitioning."""

from __future__ import annotations

from itertools import combinations

from logdeck.exceptions import LayoutError
from logdeck.ui.layout import (
    HEADER_REGION,
    INPUT_REGION,
    PLACEHOLDER_REGION,
    STATUS_REGION,
    LayoutConfig,
    LayoutResult,
    compute_regions,
)
from logdeck.ui.models import LOG_REGION


def _assert_tiles(result: LayoutResult) -> None:
    for region in result.regions:
        assert region.x >= 0 and region.y >= 0
        assert region.right <= result.width
        assert region.bottom <= result.height
        assert region.width > 0 and region.height > 0
    for first, second in combinations(result.regions, 2):
        assert not first.overlaps(second)
    assert sum(region.area for region in result.regions) == result.width * result.height


def test_standard_terminal_layout() -> None:
    result = compute_regions(80, 24)
    assert not result.degraded
    assert [region.name for region in result.regions] == [
        HEADER_REGION,
        LOG_REGION,
        STATUS_REGION,
        INPUT_REGION,
    ]
    regions = result.by_name()
    assert regions[LOG_REGION].y == 1
    assert regions[LOG_REGION].height == 21
    assert regions[STATUS_REGION].y == 22
    assert regions[INPUT_REGION].y == 23
    _assert_tiles(result)


def test_resize_regions_tile_new_bounds() -> None:
    before = compute_regions(80, 24)
    after = compute_regions(40, 10)
    _assert_tiles(before)
    _assert_tiles(after)
    assert after.get(LOG_REGION) is not None
    assert after.get(LOG_REGION).width == 40  # type: ignore[union-attr]
    assert after.get(LOG_REGION).height == 7  # type: ignore[union-attr]


def test_short_terminal_drops_header() -> None:
    result = compute_regions(40, 5)
    assert result.get(HEADER_REGION) is None
    assert result.get(LOG_REGION).height == 3  # type: ignore[union-attr]
    _assert_tiles(result)


def test_minimum_size_keeps_one_log_row() -> None:
    result = compute_regions(10, 3)
    assert not result.degraded
    assert result.get(LOG_REGION).height == 1  # type: ignore[union-attr]
    _assert_tiles(result)


def test_tiny_terminal_is_degraded_not_crashing() -> None:
    result = compute_regions(5, 2)
    assert result.degraded
    assert isinstance(result.error, LayoutError)
    assert result.error.width == 5
    assert result.error.height == 2
    assert [region.name for region in result.regions] == [PLACEHOLDER_REGION]
    _assert_tiles(result)


def test_zero_sized_terminal_has_no_regions() -> None:
    result = compute_regions(0, 0)
    assert result.degraded
    assert result.regions == ()


def test_layout_config_can_disable_header() -> None:
    config = LayoutConfig(header_min_height=1000)
    result = compute_regions(80, 24, config)
    assert result.get(HEADER_REGION) is None
    assert result.get(LOG_REGION).height == 22  # type: ignore[union-attr]
