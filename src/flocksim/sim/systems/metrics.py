from __future__ import annotations

from typing import Sequence

from ..core.agent import Boid
from ..types.metrics import TickMetrics


def build_tick_metrics(
    tick: int,
    agents: Sequence[Boid],
    species_count: int,
    collisions: int,
    tick_duration_ms: float,
) -> TickMetrics:
    population = len(agents)
    counts = [0] * species_count
    speed_sum = 0.0
    for agent in agents:
        counts[agent.species] += 1
        speed_sum += agent.velocity.length()
    return TickMetrics(
        tick=tick,
        population=population,
        collisions=collisions,
        average_speed=speed_sum / population if population else 0.0,
        species_counts=counts,
        tick_duration_ms=tick_duration_ms,
    )
