from __future__ import annotations

import math
import random

from pygame.math import Vector3


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_int(self, max_value: int) -> int:
        return self._random.randrange(max_value)

    def next_unit_sphere(self) -> Vector3:
        # Uniform direction: uniform z and azimuth.
        z = self._random.uniform(-1.0, 1.0)
        angle = self._random.uniform(0, 2 * math.pi)
        radius = math.sqrt(max(0.0, 1.0 - z * z))
        return Vector3(radius * math.cos(angle), radius * math.sin(angle), z)
