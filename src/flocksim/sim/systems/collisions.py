from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Sequence, Tuple

from ..utils.math3d import _safe_normalize

if TYPE_CHECKING:
    from ..core.agent import Boid
    from ..core.spatial_grid import SpatialGrid

_CONTACT_RADIUS_FACTOR = 0.25


def contact_distance(a: Boid, b: Boid) -> float:
    return (a.size + b.size) * _CONTACT_RADIUS_FACTOR


def resolve_collision(a: Boid, b: Boid) -> bool:
    """Push an overlapping pair apart and cancel their closing velocity along the normal.

    Coincident agents are left alone since the contact normal is undefined.
    """

    min_distance = contact_distance(a, b)
    diff = a.position - b.position
    distance = diff.length()
    if not 0 < distance < min_distance:
        return False

    normal = _safe_normalize(diff)
    push = normal * ((min_distance - distance) * 0.5)
    a.position += push
    b.position -= push

    closing = (a.velocity - b.velocity).dot(normal)
    if closing < 0:
        impulse = normal * closing
        a.velocity -= impulse
        b.velocity += impulse
    return True


def resolve_collisions(agents: Sequence[Boid], grid: SpatialGrid | None = None) -> int:
    """Run one collision pass over every unordered pair and return the number resolved."""

    resolved = 0
    for i, j in _candidate_pairs(agents, grid):
        if resolve_collision(agents[i], agents[j]):
            resolved += 1
    return resolved


def _candidate_pairs(agents: Sequence[Boid], grid: SpatialGrid | None) -> Iterable[Tuple[int, int]]:
    count = len(agents)
    if grid is None:
        return ((i, j) for i in range(count) for j in range(i + 1, count))

    grid.clear()
    max_size = 0.0
    for index, agent in enumerate(agents):
        grid.insert(index, agent.position)
        if agent.size > max_size:
            max_size = agent.size
    radius = max_size * 2 * _CONTACT_RADIUS_FACTOR
    pairs: List[Tuple[int, int]] = []
    for i, agent in enumerate(agents):
        for j in grid.indices_near(agent.position, radius):
            if j > i:
                pairs.append((i, j))
    pairs.sort()
    return pairs
