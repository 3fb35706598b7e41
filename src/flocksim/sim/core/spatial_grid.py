from __future__ import annotations

import math
from typing import Dict, List, Tuple

from pygame.math import Vector3

CellKey = Tuple[int, int, int]


class SpatialGrid:
    """Uniform hash grid over agent indices, rebuilt once per collision pass."""

    def __init__(self, cell_size: float) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[CellKey, List[int]] = {}
        self._positions: List[Vector3] = []
        self._active_keys: List[CellKey] = []
        self._neighbor_scratch: List[int] = []

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()
        self._positions.clear()

    def insert(self, index: int, position: Vector3) -> None:
        if index != len(self._positions):
            raise ValueError(f"indices must be inserted in order, expected {len(self._positions)} got {index}")
        self._positions.append(position)
        key = self._cell_key(position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket survived a clear(); mark it active again.
            self._active_keys.append(key)
        bucket.append(index)

    def indices_near(self, position: Vector3, radius: float) -> List[int]:
        """Return inserted indices within ``radius`` of ``position``, in ascending order."""

        self._neighbor_scratch.clear()
        base_x, base_y, base_z = self._cell_key(position)
        cell_range = int(math.ceil(radius / self._cell_size))
        radius_sq = radius * radius
        positions = self._positions
        cells = self._cells
        append = self._neighbor_scratch.append

        for dx in range(-cell_range, cell_range + 1):
            for dy in range(-cell_range, cell_range + 1):
                for dz in range(-cell_range, cell_range + 1):
                    bucket = cells.get((base_x + dx, base_y + dy, base_z + dz))
                    if not bucket:
                        continue
                    for index in bucket:
                        if positions[index].distance_squared_to(position) <= radius_sq:
                            append(index)
        self._neighbor_scratch.sort()
        return self._neighbor_scratch

    def _cell_key(self, position: Vector3) -> CellKey:
        size = self._cell_size
        return (int(position.x // size), int(position.y // size), int(position.z // size))
