"""TIA-598 fiber color code engine.

Maps a fiber ordinal within a cable to its buffer tube and fiber colors.
Every function here is pure; lookups outside a cable's range return ``None``
instead of raising so callers rendering partial input never crash.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class FiberColor:
    name: str
    hex: str
    text_color: str


TIA_598_COLORS: tuple[FiberColor, ...] = (
    FiberColor("Blue", "#0066CC", "#FFFFFF"),
    FiberColor("Orange", "#FF6600", "#FFFFFF"),
    FiberColor("Green", "#00AA00", "#FFFFFF"),
    FiberColor("Brown", "#8B4513", "#FFFFFF"),
    FiberColor("Slate", "#708090", "#FFFFFF"),
    FiberColor("White", "#FFFFFF", "#000000"),
    FiberColor("Red", "#CC0000", "#FFFFFF"),
    FiberColor("Black", "#1A1A1A", "#FFFFFF"),
    FiberColor("Yellow", "#FFCC00", "#000000"),
    FiberColor("Violet", "#8800AA", "#FFFFFF"),
    FiberColor("Rose", "#FF69B4", "#000000"),
    FiberColor("Aqua", "#00CCCC", "#000000"),
)

COLOR_COUNT = len(TIA_598_COLORS)
DEFAULT_FIBERS_PER_TUBE = 12


@dataclass(frozen=True)
class CableConfig:
    fiber_count: int
    tube_count: int
    fibers_per_tube: int


# Standard loose-tube constructions; small counts ship as a single tube.
STANDARD_CABLES: dict[int, CableConfig] = {
    count: CableConfig(count, tubes, count // tubes)
    for count, tubes in (
        (2, 1),
        (4, 1),
        (6, 1),
        (8, 1),
        (12, 1),
        (24, 2),
        (36, 3),
        (48, 4),
        (72, 6),
        (96, 8),
        (144, 12),
        (216, 18),
        (288, 24),
        (432, 36),
        (576, 48),
        (864, 72),
    )
}


@dataclass(frozen=True)
class FiberColorInfo:
    fiber_number: int
    tube_number: int
    position_in_tube: int
    tube_color: FiberColor
    fiber_color: FiberColor

    @property
    def tube_color_index(self) -> int:
        return (self.tube_number - 1) % COLOR_COUNT

    @property
    def fiber_color_index(self) -> int:
        return (self.position_in_tube - 1) % COLOR_COUNT

    @property
    def tube_color_name(self) -> str:
        return self.tube_color.name

    @property
    def fiber_color_name(self) -> str:
        return self.fiber_color.name

    @property
    def label(self) -> str:
        return f"T{self.tube_number}-F{self.position_in_tube}"

    @property
    def display(self) -> str:
        return format_fiber_color(self)


@dataclass(frozen=True)
class TubeInfo:
    tube_number: int
    color: FiberColor
    start_fiber: int
    end_fiber: int
    tube_group: int | None = None


def fibers_per_tube(cable_fiber_count: int) -> int:
    config = STANDARD_CABLES.get(cable_fiber_count)
    return config.fibers_per_tube if config else DEFAULT_FIBERS_PER_TUBE


@lru_cache(maxsize=4096)
def color_info(fiber_number: int, cable_fiber_count: int) -> FiberColorInfo | None:
    """Return tube and fiber colors for ``fiber_number`` in a cable.

    ``None`` when the ordinal falls outside ``[1, cable_fiber_count]``.
    Non-standard cable sizes are laid out at 12 fibers per tube.
    """
    if fiber_number < 1 or fiber_number > cable_fiber_count:
        return None
    per_tube = fibers_per_tube(cable_fiber_count)
    tube_number = math.ceil(fiber_number / per_tube)
    position = ((fiber_number - 1) % per_tube) + 1
    return FiberColorInfo(
        fiber_number=fiber_number,
        tube_number=tube_number,
        position_in_tube=position,
        tube_color=TIA_598_COLORS[(tube_number - 1) % COLOR_COUNT],
        fiber_color=TIA_598_COLORS[(position - 1) % COLOR_COUNT],
    )


@lru_cache(maxsize=4096)
def fiber_ordinal(tube_number: int, position_in_tube: int, cable_fiber_count: int) -> int | None:
    """Inverse of :func:`color_info`, defined for standard cable sizes only."""
    config = STANDARD_CABLES.get(cable_fiber_count)
    if config is None:
        return None
    if tube_number < 1 or tube_number > config.tube_count:
        return None
    if position_in_tube < 1 or position_in_tube > config.fibers_per_tube:
        return None
    return (tube_number - 1) * config.fibers_per_tube + position_in_tube


def fibers_in_tube(tube_number: int, cable_fiber_count: int) -> list[FiberColorInfo]:
    config = STANDARD_CABLES.get(cable_fiber_count)
    if config is None or tube_number < 1 or tube_number > config.tube_count:
        return []
    start = (tube_number - 1) * config.fibers_per_tube + 1
    fibers = []
    for fiber_number in range(start, start + config.fibers_per_tube):
        info = color_info(fiber_number, cable_fiber_count)
        if info is not None:
            fibers.append(info)
    return fibers


def tube_layout(cable_fiber_count: int) -> list[TubeInfo]:
    """Tubes of a standard cable in order.

    Cables with more than 12 tubes repeat the color sequence, so each tube is
    also tagged with its group of 12 (1-based).
    """
    config = STANDARD_CABLES.get(cable_fiber_count)
    if config is None:
        return []
    grouped = config.tube_count > COLOR_COUNT
    tubes = []
    for tube_number in range(1, config.tube_count + 1):
        start = (tube_number - 1) * config.fibers_per_tube + 1
        tubes.append(
            TubeInfo(
                tube_number=tube_number,
                color=TIA_598_COLORS[(tube_number - 1) % COLOR_COUNT],
                start_fiber=start,
                end_fiber=start + config.fibers_per_tube - 1,
                tube_group=(tube_number - 1) // COLOR_COUNT + 1 if grouped else None,
            )
        )
    return tubes


def format_fiber_color(info: FiberColorInfo | None) -> str:
    if info is None:
        return "Unknown"
    return f"{info.tube_color.name}/{info.fiber_color.name}"
