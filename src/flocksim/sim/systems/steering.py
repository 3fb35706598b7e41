from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from pygame.math import Vector3

from ..utils.math3d import _clamp_length, _set_length

if TYPE_CHECKING:
    from ..core.agent import Boid
    from ..core.config import SimulationConfig

_SEPARATION_RADIUS_FACTOR = 0.5
_INTER_SPECIES_RADIUS_FACTOR = 1.5
_INTER_SPECIES_FALLOFF = 0.2
_INTER_SPECIES_FORCE_FACTOR = 2.0


def accumulate_flocking_forces(agent: Boid, agents: Sequence[Boid], config: SimulationConfig) -> None:
    """Add same-species flocking and cross-species matrix forces into ``agent.acceleration``.

    Positions and velocities of ``agents`` are read as they are at call time; during a tick
    some of them have already been integrated.
    """

    attrs = config.attributes_for(agent.species)
    perception = attrs.perception_radius
    separation_radius = perception * _SEPARATION_RADIUS_FACTOR
    inter_radius = perception * _INTER_SPECIES_RADIUS_FACTOR
    pos = agent.position

    separation = Vector3()
    alignment = Vector3()
    cohesion = Vector3()
    inter_species = Vector3()
    same_total = 0
    inter_total = 0

    for other in agents:
        if other is agent:
            continue
        offset = other.position - pos
        dist = offset.length()

        if other.species == agent.species:
            if dist < perception:
                if 0 < dist < separation_radius:
                    separation -= offset / (dist * dist)
                alignment += other.velocity
                cohesion += other.position
                same_total += 1
        elif dist < inter_radius:
            weight = config.interactions.weight(agent.species, other.species)
            if weight != 0:
                pull = _set_length(offset, abs(weight))
                if weight < 0:
                    pull = -pull
                inter_species += pull / max(1.0, dist * _INTER_SPECIES_FALLOFF)
                inter_total += 1

    if same_total > 0:
        velocity = agent.velocity
        max_speed = attrs.max_speed
        max_force = attrs.max_force
        separation /= same_total
        alignment /= same_total
        cohesion /= same_total
        sep_steer = _clamp_length(_set_length(separation, max_speed) - velocity, max_force * attrs.separation_weight)
        ali_steer = _clamp_length(_set_length(alignment, max_speed) - velocity, max_force * attrs.alignment_weight)
        coh_steer = _clamp_length(_set_length(cohesion - pos, max_speed) - velocity, max_force * attrs.cohesion_weight)
        agent.acceleration += sep_steer
        agent.acceleration += ali_steer
        agent.acceleration += coh_steer

    if inter_total > 0:
        inter_species /= inter_total
        agent.acceleration += _clamp_length(inter_species, attrs.max_force * _INTER_SPECIES_FORCE_FACTOR)


def avoid_edges(
    agent: Boid,
    bounds: float,
    max_force: float,
    margin: float = 8.0,
    force_scale: float = 5.0,
) -> bool:
    """Steer away from faces within ``margin``, then hard clamp onto the cube.

    Returns True when the hard clamp bounced the agent off a face.
    """

    force = max_force * force_scale
    pos = agent.position
    steer = Vector3()
    for axis in range(3):
        # Lower-face check runs second so it wins when both faces are within the margin.
        if pos[axis] > bounds - margin:
            steer[axis] = -force
        if pos[axis] < -bounds + margin:
            steer[axis] = force
    agent.acceleration += steer
    return clamp_to_bounds(agent, bounds)


def clamp_to_bounds(agent: Boid, bounds: float) -> bool:
    """Pin the position onto the cube and halve-reflect velocity components still pointing out.

    Returns True when a velocity component was reflected.
    """

    bounced = False
    pos = agent.position
    vel = agent.velocity
    for axis in range(3):
        if pos[axis] >= bounds:
            pos[axis] = bounds
            if vel[axis] > 0:
                vel[axis] *= -0.5
                bounced = True
        if pos[axis] <= -bounds:
            pos[axis] = -bounds
            if vel[axis] < 0:
                vel[axis] *= -0.5
                bounced = True
    return bounced
