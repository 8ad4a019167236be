"""Splice matrix construction and batch splice generation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ospnet.models.network import SpliceStatus, SpliceType
from ospnet.services.fiber_colors import FiberColorInfo, color_info


@dataclass(frozen=True)
class SpliceMatrixCell:
    fiber_a: int
    fiber_b: int
    color_info_a: FiberColorInfo
    color_info_b: FiberColorInfo
    splice: Any | None = None

    @property
    def is_spliced(self) -> bool:
        return self.splice is not None

    @property
    def splice_id(self) -> int | None:
        return self.splice.id if self.splice is not None else None


def build_matrix(
    cable_a_fiber_count: int,
    cable_b_fiber_count: int,
    existing_splices: Iterable[Any],
) -> list[list[SpliceMatrixCell]]:
    """Cross every fiber of cable A with every fiber of cable B.

    Rows are ordered by ``fiber_a`` and cells by ``fiber_b``. A cell carries the
    existing splice for that exact pair, if any. Fibers without color info
    are left out, so inconsistent counts shrink the grid instead of failing.
    """
    lookup = {(splice.fiber_a, splice.fiber_b): splice for splice in existing_splices}
    colors_b = [color_info(fiber_b, cable_b_fiber_count) for fiber_b in range(1, cable_b_fiber_count + 1)]

    matrix: list[list[SpliceMatrixCell]] = []
    for fiber_a in range(1, cable_a_fiber_count + 1):
        info_a = color_info(fiber_a, cable_a_fiber_count)
        if info_a is None:
            continue
        row = [
            SpliceMatrixCell(
                fiber_a=fiber_a,
                fiber_b=info_b.fiber_number,
                color_info_a=info_a,
                color_info_b=info_b,
                splice=lookup.get((fiber_a, info_b.fiber_number)),
            )
            for info_b in colors_b
            if info_b is not None
        ]
        matrix.append(row)
    return matrix


def color_snapshot(fiber_number: int, cable_fiber_count: int) -> tuple[str | None, str | None]:
    info = color_info(fiber_number, cable_fiber_count)
    if info is None:
        return None, None
    return info.tube_color.name, info.fiber_color.name


# ---------------------------------------------------------------------------
# Batch generation
# ---------------------------------------------------------------------------


@dataclass
class BatchSpliceInput:
    tray_id: int
    cable_a_fiber_count: int
    cable_b_fiber_count: int
    start_fiber_a: int = 1
    start_fiber_b: int = 1
    count: int = 12
    cable_a_id: int | None = None
    cable_a_name: str | None = None
    cable_b_id: int | None = None
    cable_b_name: str | None = None
    splice_type: SpliceType = SpliceType.fusion
    technician_name: str | None = None


def generate_batch_splices(batch: BatchSpliceInput) -> list[dict[str, Any]]:
    """Column values for ``count`` consecutive pairings, all ``pending``.

    Pairs running past either cable's fiber count are skipped.
    """
    rows = []
    for offset in range(batch.count):
        fiber_a = batch.start_fiber_a + offset
        fiber_b = batch.start_fiber_b + offset
        info_a = color_info(fiber_a, batch.cable_a_fiber_count)
        info_b = color_info(fiber_b, batch.cable_b_fiber_count)
        if info_a is None or info_b is None:
            continue
        rows.append(
            {
                "tray_id": batch.tray_id,
                "cable_a_id": batch.cable_a_id,
                "cable_a_name": batch.cable_a_name,
                "fiber_a": fiber_a,
                "tube_a_color": info_a.tube_color.name,
                "fiber_a_color": info_a.fiber_color.name,
                "cable_b_id": batch.cable_b_id,
                "cable_b_name": batch.cable_b_name,
                "fiber_b": fiber_b,
                "tube_b_color": info_b.tube_color.name,
                "fiber_b_color": info_b.fiber_color.name,
                "splice_type": batch.splice_type,
                "technician_name": batch.technician_name,
                "status": SpliceStatus.pending,
            }
        )
    return rows


def auto_match_pairs(cable_a_fiber_count: int, cable_b_fiber_count: int) -> list[tuple[int, int]]:
    """Straight-through 1:1 pairing up to the smaller cable."""
    return [(fiber, fiber) for fiber in range(1, min(cable_a_fiber_count, cable_b_fiber_count) + 1)]
