from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotWorld:
    bounds: float
    speed_multiplier: float
    size_multiplier: float


@dataclass(slots=True)
class SnapshotMetadata:
    seed: int
    species_count: int
    species_colors: List[str]
    config_version: str
