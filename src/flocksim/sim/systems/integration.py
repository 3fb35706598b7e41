from __future__ import annotations

from typing import TYPE_CHECKING

from ..utils.math3d import _clamp_length_range
from .steering import avoid_edges, clamp_to_bounds

if TYPE_CHECKING:
    from ..core.agent import Boid
    from ..core.config import SimulationConfig


def integrate(agent: Boid, config: SimulationConfig) -> None:
    """Apply edge steering, advance one tick and clear the acceleration accumulator.

    After this call the agent lies inside ``[-bounds, bounds]^3`` and its speed is within
    ``[min_speed, max_speed * speed_multiplier]`` (a zero velocity stays zero).
    """

    attrs = config.attributes_for(agent.species)
    bounds = config.bounds
    speed_limit = attrs.max_speed * config.speed_multiplier
    avoid_edges(agent, bounds, attrs.max_force, config.edge_margin, config.edge_force_scale)

    agent.velocity = _clamp_length_range(agent.velocity + agent.acceleration, config.min_speed, speed_limit)
    agent.position += agent.velocity
    agent.acceleration.update(0.0, 0.0, 0.0)

    if clamp_to_bounds(agent, bounds):
        # A bounce halves one component and can drop the speed under the floor.
        agent.velocity = _clamp_length_range(agent.velocity, config.min_speed, speed_limit)
