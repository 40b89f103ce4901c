"""Tests for the grid bucketing spatial index."""

from __future__ import annotations

import pytest

from safepulse.services.geo import BoundingBox, bounding_box
from safepulse.services.spatial_index import GridIndex


class TestGridIndex:
    def test_rejects_non_positive_cell_size(self) -> None:
        with pytest.raises(ValueError):
            GridIndex(0)

    def test_upsert_and_candidates(self) -> None:
        index = GridIndex(cell_degrees=0.01)
        index.upsert("a", 30.8780, 76.8740)
        index.upsert("far", 10.0, 10.0)

        found = index.candidates(bounding_box(30.8781, 76.8741, 500))
        assert found == {"a"}
        assert len(index) == 2

    def test_move_between_cells(self) -> None:
        index = GridIndex(cell_degrees=0.01)
        index.upsert("a", 30.0, 76.0)
        index.upsert("a", 40.0, 80.0)

        assert index.candidates(bounding_box(30.0, 76.0, 100)) == set()
        assert index.candidates(bounding_box(40.0, 80.0, 100)) == {"a"}
        assert len(index) == 1
        everywhere = BoundingBox(-90.0, 90.0, -180.0, 180.0)
        assert index.candidates(everywhere) == {"a"}

    def test_clear(self) -> None:
        index = GridIndex()
        index.upsert("a", 1.0, 1.0)
        index.upsert("b", 2.0, 2.0)
        index.clear()
        assert len(index) == 0

    def test_wrapped_box_finds_both_sides(self) -> None:
        index = GridIndex(cell_degrees=0.01)
        index.upsert("east", 0.0, 179.9995)
        index.upsert("west", 0.0, -179.9995)
        index.upsert("middle", 0.0, 0.0)

        box = bounding_box(0.0, 179.9999, 1_000)
        assert box.wraps
        assert index.candidates(box) == {"east", "west"}

    def test_huge_box_walks_occupied_cells(self) -> None:
        index = GridIndex(cell_degrees=0.001)
        index.upsert("a", 10.0, 10.0)
        index.upsert("b", -50.0, 120.0)

        box = BoundingBox(-90.0, 90.0, -180.0, 180.0)
        assert index.candidates(box) == {"a", "b"}

    def test_same_cell_upsert_is_noop(self) -> None:
        index = GridIndex(cell_degrees=1.0)
        index.upsert("a", 10.1, 10.1)
        index.upsert("a", 10.2, 10.2)
        assert len(index) == 1
        assert index.candidates(bounding_box(10.2, 10.2, 10)) == {"a"}
