"""Viewport partitioning for the dashboard screen.

``compute_regions`` is a pure function of the terminal size and a static
``LayoutConfig``. Stacked top to bottom, full width:

    header   (1 row, only when the terminal is tall enough)
    log      (all remaining rows)
    status   (1 row)
    input    (1 row)

Below the minimum viable size the result is degraded: one ``placeholder``
region covering the screen and a ``LayoutError`` describing why.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import LayoutError
from .models import LOG_REGION, Region

HEADER_REGION = "header"
STATUS_REGION = "status"
INPUT_REGION = "input"
PLACEHOLDER_REGION = "placeholder"


@dataclass(frozen=True, slots=True)
class LayoutConfig:
    min_width: int = 10
    min_height: int = 3
    header_height: int = 1
    header_min_height: int = 6
    status_height: int = 1
    input_height: int = 1


@dataclass(frozen=True, slots=True)
class LayoutResult:
    """Regions for one terminal size, or the degraded placeholder state."""

    width: int
    height: int
    regions: tuple[Region, ...]
    degraded: bool = False
    error: LayoutError | None = None

    def get(self, name: str) -> Region | None:
        for region in self.regions:
            if region.name == name:
                return region
        return None

    def by_name(self) -> dict[str, Region]:
        return {region.name: region for region in self.regions}


def _degraded(width: int, height: int, config: LayoutConfig) -> LayoutResult:
    error = LayoutError(
        f"terminal {width}x{height} is below minimum {config.min_width}x{config.min_height}",
        width=width,
        height=height,
    )
    regions: tuple[Region, ...] = ()
    if width > 0 and height > 0:
        regions = (Region(PLACEHOLDER_REGION, 0, 0, width, height),)
    return LayoutResult(width=width, height=height, regions=regions, degraded=True, error=error)


def compute_regions(width: int, height: int, config: LayoutConfig | None = None) -> LayoutResult:
    """Partition a ``width x height`` viewport into non-overlapping regions."""
    config = config or LayoutConfig()
    if width < config.min_width or height < config.min_height:
        return _degraded(width, height, config)

    fixed_bottom = config.status_height + config.input_height
    header_height = config.header_height if height >= config.header_min_height else 0
    log_height = height - header_height - fixed_bottom
    if log_height < 1:
        return _degraded(width, height, config)

    regions: list[Region] = []
    y = 0
    if header_height:
        regions.append(Region(HEADER_REGION, 0, y, width, header_height))
        y += header_height
    regions.append(Region(LOG_REGION, 0, y, width, log_height))
    y += log_height
    if config.status_height:
        regions.append(Region(STATUS_REGION, 0, y, width, config.status_height))
        y += config.status_height
    if config.input_height:
        regions.append(Region(INPUT_REGION, 0, y, width, config.input_height))
    return LayoutResult(width=width, height=height, regions=tuple(regions))
