"""Fixed-size grid bucketing of device positions.

Each located identity sits in exactly one cell keyed by
``(floor(lat / cell), floor(lon / cell))``.  A proximity lookup only
visits the cells overlapping the query circle's bounding box, so a
broadcast no longer scans every registered device.  The index returns
*candidates*; callers still apply the exact distance check.
"""

from __future__ import annotations

import math

from safepulse.services.geo import BoundingBox

Cell = tuple[int, int]


class GridIndex:
    """Cell -> identities map with O(1) moves.

    Not thread-safe; mutate it only from the event loop thread, without
    awaiting in between related updates.
    """

    __slots__ = ("_cell_degrees", "_cells", "_positions")

    def __init__(self, cell_degrees: float = 0.01) -> None:
        if cell_degrees <= 0:
            raise ValueError("cell_degrees must be positive")
        self._cell_degrees = cell_degrees
        self._cells: dict[Cell, set[str]] = {}
        self._positions: dict[str, Cell] = {}

    def _cell_for(self, lat: float, lon: float) -> Cell:
        return (
            math.floor(lat / self._cell_degrees),
            math.floor(lon / self._cell_degrees),
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def upsert(self, identity: str, lat: float, lon: float) -> None:
        cell = self._cell_for(lat, lon)
        previous = self._positions.get(identity)
        if previous == cell:
            return
        if previous is not None:
            self._discard(identity, previous)
        self._cells.setdefault(cell, set()).add(identity)
        self._positions[identity] = cell

    def clear(self) -> None:
        self._cells.clear()
        self._positions.clear()

    def _discard(self, identity: str, cell: Cell) -> None:
        members = self._cells.get(cell)
        if members is None:
            return
        members.discard(identity)
        if not members:
            del self._cells[cell]

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def candidates(self, box: BoundingBox) -> set[str]:
        """Return identities whose cell overlaps *box*."""
        min_row = math.floor(box.min_lat / self._cell_degrees)
        max_row = math.floor(box.max_lat / self._cell_degrees)
        col_ranges = self._column_ranges(box)

        span = (max_row - min_row + 1) * sum(hi - lo + 1 for lo, hi in col_ranges)
        result: set[str] = set()

        if span > len(self._cells):
            # Huge radius: walking the occupied cells is cheaper.
            for (row, col), members in self._cells.items():
                if min_row <= row <= max_row and any(lo <= col <= hi for lo, hi in col_ranges):
                    result.update(members)
            return result

        for row in range(min_row, max_row + 1):
            for lo, hi in col_ranges:
                for col in range(lo, hi + 1):
                    members = self._cells.get((row, col))
                    if members:
                        result.update(members)
        return result

    def _column_ranges(self, box: BoundingBox) -> list[tuple[int, int]]:
        def col(lon: float) -> int:
            return math.floor(lon / self._cell_degrees)

        if box.wraps:
            return [(col(box.min_lon), col(180.0)), (col(-180.0), col(box.max_lon))]
        return [(col(box.min_lon), col(box.max_lon))]

    def __len__(self) -> int:
        return len(self._positions)

