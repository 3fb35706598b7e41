from __future__ import annotations

from dataclasses import dataclass, field

from pygame.math import Vector3


@dataclass(slots=True, eq=False)
class Boid:
    id: int
    species: int
    size: float
    position: Vector3
    velocity: Vector3
    acceleration: Vector3 = field(default_factory=Vector3)
