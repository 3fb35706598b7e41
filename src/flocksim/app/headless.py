from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.flock import Flock
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "tick",
    "population",
    "collisions",
    "avg_speed",
    "tick_ms",
]


def _format_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.collisions,
        f"{metrics.average_speed:.4f}",
        f"{tick_ms:.3f}",
        *metrics.species_counts,
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    population: Optional[int] = None,
    config_path: Optional[Path] = None,
    summary_path: Optional[Path] = None,
) -> Flock:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if population is not None:
        config.initial_population = population
    flock = Flock.from_config(config)
    logger.info("Running %d headless steps with %d agents (seed=%d)", steps, len(flock.agents), config.seed)

    tick_ms_series: list[float] = []
    collision_series: list[float] = []
    speed_series: list[float] = []

    csv_file = None
    writer = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        species_columns = [f"species_{idx}" for idx in range(config.species_count)]
        writer.writerow(_BASIC_HEADER + species_columns)

    try:
        for _ in range(steps):
            metrics = flock.step(config)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            tick_ms_series.append(tick_ms)
            collision_series.append(float(metrics.collisions))
            speed_series.append(metrics.average_speed)
            if writer:
                writer.writerow(_format_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        summary = {
            "steps": steps,
            "seed": config.seed,
            "population": len(flock.agents),
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "collisions": _summary_stats(collision_series),
            "average_speed": _summary_stats(speed_series),
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return flock


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flock simulation")
    parser.add_argument("--steps", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--population", type=int, default=None, help="Override the initial population")
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at debug level")
    args = parser.parse_args()
    if args.population is not None and args.population < 0:
        parser.error("--population must be non-negative")
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        population=args.population,
        config_path=args.config,
        summary_path=args.summary,
    )


if __name__ == "__main__":
    main()
