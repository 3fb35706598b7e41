from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List

from pygame.math import Vector3

from .agent import Boid
from .config import SPECIES_COLORS, SimulationConfig
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from ..systems import collisions, metrics as metrics_system
from ..systems.integration import integrate
from ..systems.steering import accumulate_flocking_forces
from ..types.metrics import TickMetrics
from ..types.render import RenderRecord
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math3d import _forward_from_velocity

logger = logging.getLogger(__name__)

_FORWARD_THRESHOLD_SQ = 1e-4


class Flock:
    """Owns the agent list and advances it one tick at a time.

    The configuration is passed into every call and re-read each time; the flock never
    keeps a copy of it. Within a tick agents are updated in list order and each agent's
    force accumulation sees the already-integrated state of the agents before it.
    """

    def __init__(self, seed: int = 42):
        self._rng = DeterministicRng(seed)
        self._agents: List[Boid] = []
        self._grid: SpatialGrid | None = None
        self._next_id = 0
        self._tick = 0
        self._metrics: TickMetrics | None = None

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "Flock":
        flock = cls(config.seed)
        flock.set_population_target(config.initial_population, config)
        return flock

    @property
    def agents(self) -> List[Boid]:
        return self._agents

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def reset(self, config: SimulationConfig, population: int | None = None) -> None:
        self._agents.clear()
        self._rng.reset()
        self._next_id = 0
        self._tick = 0
        self._metrics = None
        target = config.initial_population if population is None else population
        self.set_population_target(target, config)

    def set_population_target(self, target: int, config: SimulationConfig) -> None:
        if target < 0:
            raise ValueError(f"population target must be non-negative, got {target}")
        current = len(self._agents)
        if current < target:
            for _ in range(target - current):
                self._agents.append(self._spawn(config))
            logger.debug("Grew flock from %d to %d agents", current, target)
        elif current > target:
            del self._agents[target:]
            logger.debug("Shrank flock from %d to %d agents", current, target)

    def step(self, config: SimulationConfig) -> TickMetrics:
        start = perf_counter()
        agents = self._agents

        collision_count = collisions.resolve_collisions(agents, self._broadphase(config))

        for agent in agents:
            accumulate_flocking_forces(agent, agents, config)
            integrate(agent, config)

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.build_tick_metrics(
            self._tick, agents, config.species_count, collision_count, elapsed_ms
        )
        self._metrics = metrics
        self._tick += 1
        return metrics

    def render_records(self, config: SimulationConfig) -> List[RenderRecord]:
        size_multiplier = config.size_multiplier
        return [
            RenderRecord(
                id=agent.id,
                position=Vector3(agent.position),
                size=agent.size * size_multiplier,
                forward=_forward_from_velocity(agent.velocity, _FORWARD_THRESHOLD_SQ),
                species=agent.species,
            )
            for agent in self._agents
        ]

    def snapshot(self, config: SimulationConfig) -> Snapshot:
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.build_tick_metrics(self._tick, self._agents, config.species_count, 0, 0.0)
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            agents=[self._record_payload(record) for record in self.render_records(config)],
            world=SnapshotWorld(
                bounds=config.bounds,
                speed_multiplier=config.speed_multiplier,
                size_multiplier=config.size_multiplier,
            ),
            metadata=SnapshotMetadata(
                seed=self._rng.seed,
                species_count=config.species_count,
                species_colors=[SPECIES_COLORS[i % len(SPECIES_COLORS)] for i in range(config.species_count)],
                config_version=config.config_version,
            ),
        )

    def _spawn(self, config: SimulationConfig) -> Boid:
        rng = self._rng
        extent = config.bounds * config.spawn_extent
        size_low, size_high = config.size_range
        agent = Boid(
            id=self._next_id,
            species=rng.next_int(config.species_count),
            size=rng.next_range(size_low, size_high),
            position=Vector3(
                rng.next_range(-extent, extent),
                rng.next_range(-extent, extent),
                rng.next_range(-extent, extent),
            ),
            velocity=rng.next_unit_sphere() * config.initial_speed,
        )
        self._next_id += 1
        return agent

    def _broadphase(self, config: SimulationConfig) -> SpatialGrid | None:
        if config.collision_broadphase != "grid":
            return None
        cell_size = config.size_range[1] * 0.5
        if self._grid is None or self._grid.cell_size != cell_size:
            self._grid = SpatialGrid(cell_size)
        return self._grid

    @staticmethod
    def _record_payload(record: RenderRecord) -> Dict[str, Any]:
        forward = record.forward
        return {
            "id": record.id,
            "species": record.species,
            "x": record.position.x,
            "y": record.position.y,
            "z": record.position.z,
            "size": record.size,
            "forward": None if forward is None else [forward.x, forward.y, forward.z],
        }
