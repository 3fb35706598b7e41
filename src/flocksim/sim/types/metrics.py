from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    collisions: int
    average_speed: float
    species_counts: List[int] = field(default_factory=list)
    tick_duration_ms: float = 0.0
