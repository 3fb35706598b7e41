from __future__ import annotations

from pygame.math import Vector3
from pytest import approx

from flocksim.sim.core.agent import Boid
from flocksim.sim.core.spatial_grid import SpatialGrid
from flocksim.sim.systems.collisions import contact_distance, resolve_collision, resolve_collisions


def _boid(agent_id: int, position, velocity=(0.0, 0.0, 0.0), size: float = 1.0) -> Boid:
    return Boid(id=agent_id, species=0, size=size, position=Vector3(position), velocity=Vector3(velocity))


def test_overlapping_pair_is_pushed_to_contact_distance():
    a = _boid(0, (0.0, 0.0, 0.0))
    b = _boid(1, (0.3, 0.0, 0.0))

    assert resolve_collision(a, b)

    assert a.position.x == approx(-0.1)
    assert b.position.x == approx(0.4)
    assert a.position.distance_to(b.position) == approx(contact_distance(a, b))
    assert contact_distance(a, b) == approx(0.5)


def test_closing_velocities_exchange_equal_and_opposite_impulse():
    a = _boid(0, (0.0, 0.0, 0.0), (0.2, 0.05, 0.0))
    b = _boid(1, (0.3, 0.0, 0.0), (-0.2, 0.0, 0.0))
    before_a = Vector3(a.velocity)
    before_b = Vector3(b.velocity)

    resolve_collision(a, b)

    delta_a = a.velocity - before_a
    delta_b = b.velocity - before_b
    assert (delta_a.x, delta_a.y, delta_a.z) == approx((-delta_b.x, -delta_b.y, -delta_b.z))
    assert delta_a.x == approx(-0.4)
    # Tangential motion is untouched.
    assert a.velocity.y == approx(0.05)


def test_separating_pair_keeps_velocities():
    a = _boid(0, (0.0, 0.0, 0.0), (-0.2, 0.0, 0.0))
    b = _boid(1, (0.3, 0.0, 0.0), (0.2, 0.0, 0.0))

    resolve_collision(a, b)

    assert a.velocity.x == approx(-0.2)
    assert b.velocity.x == approx(0.2)
    assert a.position.distance_to(b.position) > 0.3


def test_coincident_agents_are_left_alone():
    a = _boid(0, (1.0, 1.0, 1.0), (0.1, 0.0, 0.0))
    b = _boid(1, (1.0, 1.0, 1.0), (-0.1, 0.0, 0.0))

    assert not resolve_collision(a, b)

    assert a.position == Vector3(1.0, 1.0, 1.0)
    assert b.position == Vector3(1.0, 1.0, 1.0)
    assert a.velocity.x == approx(0.1)


def test_pairs_outside_contact_distance_are_ignored():
    a = _boid(0, (0.0, 0.0, 0.0), size=0.5)
    b = _boid(1, (0.0, 0.6, 0.0), size=1.5)

    assert not resolve_collision(a, b)
    assert b.position.y == 0.6


def test_single_pass_counts_resolved_pairs():
    agents = [
        _boid(0, (0.0, 0.0, 0.0)),
        _boid(1, (0.2, 0.0, 0.0)),
        _boid(2, (10.0, 0.0, 0.0)),
        _boid(3, (10.0, 0.0, 0.1)),
    ]

    assert resolve_collisions(agents) == 2
    assert agents[0].position.distance_to(agents[1].position) == approx(0.5)
    assert agents[2].position.distance_to(agents[3].position) == approx(0.5)


def _scattered_pairs() -> list[Boid]:
    agents = []
    for idx in range(6):
        base = Vector3(idx * 3.0 - 8.0, (idx % 3) * 2.5, -idx * 1.5)
        agents.append(_boid(idx * 2, base, (0.1, 0.0, 0.0), size=0.5 + idx * 0.2))
        agents.append(_boid(idx * 2 + 1, base + Vector3(0.1, 0.05, -0.02), (-0.1, 0.02, 0.0), size=1.4))
    return agents


def test_grid_broadphase_matches_all_pairs_scan():
    brute = _scattered_pairs()
    gridded = _scattered_pairs()

    brute_count = resolve_collisions(brute)
    grid_count = resolve_collisions(gridded, SpatialGrid(cell_size=0.75))

    assert grid_count == brute_count == 6
    for expected, actual in zip(brute, gridded):
        assert (actual.position.x, actual.position.y, actual.position.z) == approx(
            (expected.position.x, expected.position.y, expected.position.z)
        )
        assert (actual.velocity.x, actual.velocity.y, actual.velocity.z) == approx(
            (expected.velocity.x, expected.velocity.y, expected.velocity.z)
        )
