"""Tests for splice matrix construction and batch generation."""

from types import SimpleNamespace

from ospnet.models.network import SpliceStatus
from ospnet.services.splice_matrix import (
    BatchSpliceInput,
    auto_match_pairs,
    build_matrix,
    color_snapshot,
    generate_batch_splices,
)


def test_matrix_covers_every_pair():
    matrix = build_matrix(12, 12, [])
    assert len(matrix) == 12
    assert all(len(row) == 12 for row in matrix)
    assert sum(cell.is_spliced for row in matrix for cell in row) == 0


def test_matrix_marks_existing_splice():
    splice = SimpleNamespace(id=41, fiber_a=1, fiber_b=1)
    matrix = build_matrix(12, 12, [splice])
    spliced = [cell for row in matrix for cell in row if cell.is_spliced]
    assert len(spliced) == 1
    assert spliced[0].fiber_a == 1
    assert spliced[0].fiber_b == 1
    assert spliced[0].splice_id == 41
    assert matrix[0][1].splice_id is None


def test_matrix_rectangular_and_ordered():
    matrix = build_matrix(24, 12, [])
    assert [row[0].fiber_a for row in matrix] == list(range(1, 25))
    assert [cell.fiber_b for cell in matrix[5]] == list(range(1, 13))
    assert matrix[13][0].color_info_a.tube_color.name == "Orange"


def test_color_snapshot():
    assert color_snapshot(13, 24) == ("Orange", "Blue")
    assert color_snapshot(25, 24) == (None, None)


def test_batch_generates_consecutive_pending_pairs():
    rows = generate_batch_splices(
        BatchSpliceInput(
            tray_id=3,
            cable_a_fiber_count=24,
            cable_b_fiber_count=24,
            start_fiber_a=1,
            start_fiber_b=13,
            count=4,
        )
    )
    assert [(row["fiber_a"], row["fiber_b"]) for row in rows] == [(1, 13), (2, 14), (3, 15), (4, 16)]
    assert all(row["status"] == SpliceStatus.pending for row in rows)
    assert rows[0]["tube_b_color"] == "Orange"
    assert rows[0]["fiber_b_color"] == "Blue"


def test_batch_skips_pairs_past_cable_end():
    rows = generate_batch_splices(
        BatchSpliceInput(
            tray_id=3,
            cable_a_fiber_count=12,
            cable_b_fiber_count=24,
            start_fiber_a=10,
            start_fiber_b=10,
            count=6,
        )
    )
    assert [row["fiber_a"] for row in rows] == [10, 11, 12]


def test_auto_match_pairs_stops_at_smaller_cable():
    assert auto_match_pairs(4, 2) == [(1, 1), (2, 2)]
    assert auto_match_pairs(0, 12) == []
