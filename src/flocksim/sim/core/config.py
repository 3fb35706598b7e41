from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List

import yaml

if TYPE_CHECKING:
    from .rng import DeterministicRng

logger = logging.getLogger(__name__)


class SpeciesIndexError(IndexError):
    """Raised when a species index falls outside the configured species table."""


class Species(IntEnum):
    RED = 0
    GREEN = 1
    BLUE = 2
    YELLOW = 3


SPECIES_COLORS = ["#ff4444", "#44ff44", "#4444ff", "#ffff44"]

# Ranges an external controller clamps edits into. The engine itself never reads these.
PARAMETER_RANGES: Dict[str, tuple[float, float]] = {
    "max_speed": (0.1, 2.0),
    "perception_radius": (1.0, 50.0),
    "separation_weight": (0.0, 10.0),
    "alignment_weight": (0.0, 10.0),
    "cohesion_weight": (0.0, 10.0),
    "max_force": (0.001, 1.0),
    "interaction": (-10.0, 10.0),
    "speed_multiplier": (0.0, 3.0),
    "size_multiplier": (0.1, 5.0),
    "population": (10, 2000),
}

_RANDOMIZE_RANGES: Dict[str, tuple[float, float]] = {
    "max_speed": (0.2, 0.8),
    "perception_radius": (3.0, 10.0),
    "separation_weight": (0.5, 3.0),
    "alignment_weight": (0.5, 3.0),
    "cohesion_weight": (0.5, 3.0),
}


@dataclass
class SpeciesAttributes:
    separation_weight: float = 1.0
    alignment_weight: float = 1.0
    cohesion_weight: float = 1.0
    max_speed: float = 0.5
    max_force: float = 0.01
    perception_radius: float = 5.0

    def validate(self) -> None:
        for name in ("separation_weight", "alignment_weight", "cohesion_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        for name in ("max_speed", "max_force", "perception_radius"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")


@dataclass
class InteractionMatrix:
    """Signed species x species weights; ``weights[actor][target]``.

    Positive weights pull the actor toward the target species, negative weights push it
    away. The diagonal is never read: same-species behaviour comes from the flocking rules.
    """

    weights: List[List[float]] = field(default_factory=list)

    @classmethod
    def zeros(cls, species_count: int) -> "InteractionMatrix":
        return cls([[0.0] * species_count for _ in range(species_count)])

    @property
    def species_count(self) -> int:
        return len(self.weights)

    def validate(self) -> None:
        size = len(self.weights)
        for row in self.weights:
            if len(row) != size:
                raise ValueError(f"interaction matrix must be square, got a row of {len(row)} in a {size}x{size} matrix")

    def weight(self, actor: int, target: int) -> float:
        self._check_index(actor)
        self._check_index(target)
        return self.weights[actor][target]

    def set_weight(self, actor: int, target: int, value: float) -> None:
        self._check_index(actor)
        self._check_index(target)
        self.weights[actor][target] = float(value)

    def reset(self) -> None:
        for row in self.weights:
            for idx in range(len(row)):
                row[idx] = 0.0

    def is_neutral(self) -> bool:
        return all(value == 0.0 for row in self.weights for value in row)

    def _check_index(self, species: int) -> None:
        if not 0 <= species < len(self.weights):
            raise SpeciesIndexError(f"species index {species} out of range for {len(self.weights)} species")


def default_species() -> List[SpeciesAttributes]:
    return [
        SpeciesAttributes(max_speed=0.6, perception_radius=6.0),
        SpeciesAttributes(max_speed=0.5, perception_radius=5.0),
        SpeciesAttributes(max_speed=0.4, perception_radius=4.0),
        SpeciesAttributes(max_speed=0.55, perception_radius=5.5),
    ]


@dataclass
class SimulationConfig:
    species: List[SpeciesAttributes] = field(default_factory=default_species)
    interactions: InteractionMatrix = field(default_factory=lambda: InteractionMatrix.zeros(len(Species)))
    bounds: float = 50.0
    speed_multiplier: float = 1.0
    size_multiplier: float = 1.0
    seed: int = 42
    initial_population: int = 500
    edge_margin: float = 8.0
    edge_force_scale: float = 5.0
    min_speed: float = 0.01
    spawn_extent: float = 0.9
    size_range: tuple[float, float] = (0.5, 1.5)
    initial_speed: float = 0.1
    collision_broadphase: str = "pairs"
    config_version: str = "v1"

    def __post_init__(self) -> None:
        self.validate()

    @property
    def species_count(self) -> int:
        return len(self.species)

    def validate(self) -> None:
        if not self.species:
            raise ValueError("at least one species is required")
        for attributes in self.species:
            attributes.validate()
        self.interactions.validate()
        if self.interactions.species_count != len(self.species):
            raise ValueError(
                f"interaction matrix is {self.interactions.species_count}x{self.interactions.species_count} "
                f"but {len(self.species)} species are configured"
            )
        if self.bounds <= 0:
            raise ValueError(f"bounds must be positive, got {self.bounds}")
        if self.collision_broadphase not in {"pairs", "grid"}:
            raise ValueError(f"Unknown collision broadphase: {self.collision_broadphase}")
        low, high = self.size_range
        if low <= 0 or high < low:
            raise ValueError(f"size_range must be positive and ordered, got {self.size_range}")

    def attributes_for(self, species: int) -> SpeciesAttributes:
        if not 0 <= species < len(self.species):
            raise SpeciesIndexError(f"species index {species} out of range for {len(self.species)} species")
        return self.species[species]

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        logger.info("Loaded simulation config from %s", path)
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    tick_interval: float = 1.0 / 60.0
    broadcast_interval: int = 2


def load_config(raw: dict) -> SimulationConfig:
    species_raw = raw.get("species")
    species = [SpeciesAttributes(**entry) for entry in species_raw] if species_raw else default_species()
    matrix_raw = raw.get("interactions")
    if matrix_raw is None:
        interactions = InteractionMatrix.zeros(len(species))
    else:
        interactions = InteractionMatrix([[float(value) for value in row] for row in matrix_raw])

    def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return default

    sim_values = {k: v for k, v in raw.items() if k not in {"species", "interactions", "size_range"}}
    size_range = _pair(raw.get("size_range"), SimulationConfig.size_range)
    return SimulationConfig(species=species, interactions=interactions, size_range=size_range, **sim_values)


def randomize(config: SimulationConfig, rng: "DeterministicRng") -> None:
    """Scramble the interaction matrix and the per-species flocking attributes in place."""

    low, high = PARAMETER_RANGES["interaction"]
    for row in config.interactions.weights:
        for idx in range(len(row)):
            row[idx] = rng.next_range(low, high)
    for attributes in config.species:
        for name, (low, high) in _RANDOMIZE_RANGES.items():
            setattr(attributes, name, rng.next_range(low, high))
    logger.debug("Randomized %d species and interaction matrix", config.species_count)
