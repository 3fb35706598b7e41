from __future__ import annotations

import asyncio
import json
import logging
import math
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, Dict, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import PARAMETER_RANGES, AppConfig, SpeciesIndexError, randomize
from ..sim.core.flock import Flock
from ..sim.core.rng import DeterministicRng
from ..sim.utils.math3d import _clamp_value

logger = logging.getLogger(__name__)

_SPECIES_FIELDS = (
    "separation_weight",
    "alignment_weight",
    "cohesion_weight",
    "max_speed",
    "max_force",
    "perception_radius",
)

# Snapshots a connected client may fall behind by before the oldest are dropped.
_SNAPSHOT_BACKLOG = 120


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, app_config: AppConfig):
        self.app_config = app_config
        self.config = app_config.simulation
        self.flock = Flock.from_config(self.config)
        self.broadcast_interval = max(1, app_config.broadcast_interval)
        self.running = False
        self.clients: Set[WebSocket] = set()
        self._randomizer = DeterministicRng(self.config.seed)
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=_SNAPSHOT_BACKLOG)
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.flock.tick

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
            logger.info("Simulation loop started")
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
            logger.info("Simulation loop stopped")

    async def reset(self) -> None:
        async with self._lock:
            self.flock.reset(self.config, population=len(self.flock.agents))
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def step_once(self) -> None:
        async with self._lock:
            self.flock.step(self.config)
        if self.tick % self.broadcast_interval == 0:
            await self._broadcast_snapshot()

    async def set_population(self, target: int) -> int:
        low, high = PARAMETER_RANGES["population"]
        target = int(_clamp_value(target, low, high))
        async with self._lock:
            self.flock.set_population_target(target, self.config)
        logger.info("Population target set to %d", target)
        return target

    async def update_species(self, index: int, values: Dict[str, Any]) -> Dict[str, float]:
        async with self._lock:
            attributes = self.config.attributes_for(index)
            unknown = sorted(set(values) - set(_SPECIES_FIELDS))
            if unknown:
                raise ValueError(f"Unknown species attributes: {', '.join(unknown)}")
            updates: Dict[str, float] = {}
            for name, value in values.items():
                number = float(value)
                if not math.isfinite(number):
                    raise ValueError(f"{name} must be a finite number")
                low, high = PARAMETER_RANGES[name]
                updates[name] = _clamp_value(number, low, high)
            for name, value in updates.items():
                setattr(attributes, name, value)
            return asdict(attributes)

    async def set_interaction(self, actor: int, target: int, value: float) -> float:
        low, high = PARAMETER_RANGES["interaction"]
        async with self._lock:
            self.config.interactions.set_weight(actor, target, _clamp_value(value, low, high))
            return self.config.interactions.weight(actor, target)

    async def randomize(self) -> None:
        async with self._lock:
            randomize(self.config, self._randomizer)

    async def reset_interactions(self) -> None:
        async with self._lock:
            self.config.interactions.reset()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.app_config.tick_interval)
            if not self.running:
                continue
            await self.step_once()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def config_payload(self) -> Dict[str, Any]:
        return {
            "species": [asdict(attributes) for attributes in self.config.species],
            "interactions": [list(row) for row in self.config.interactions.weights],
            "bounds": self.config.bounds,
            "speed_multiplier": self.config.speed_multiplier,
            "size_multiplier": self.config.size_multiplier,
            "population": len(self.flock.agents),
            "ranges": {name: list(bounds) for name, bounds in PARAMETER_RANGES.items()},
        }

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.flock.snapshot(self.config)
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            if not self.clients:
                self._snapshot_queue.clear()
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


controller = SimulationController(AppConfig())


@asynccontextmanager
async def lifespan(app: FastAPI):
    await controller.start()
    yield
    await controller.shutdown()


app = FastAPI(title="Flock Simulation", lifespan=lifespan)


def _require_number(payload: dict, key: str) -> float:
    if key not in payload:
        raise HTTPException(status_code=400, detail=f"Missing field: {key}")
    try:
        value = float(payload[key])
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Field {key} must be a number") from None
    if not math.isfinite(value):
        raise HTTPException(status_code=400, detail=f"Field {key} must be finite")
    return value


@app.get("/api/status")
async def status() -> JSONResponse:
    snapshot = controller.flock.snapshot(controller.config)
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "population": len(controller.flock.agents),
            "metrics": asdict(snapshot.metrics),
        }
    )


@app.get("/api/config")
async def get_config() -> JSONResponse:
    return JSONResponse(controller.config_payload())


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/step")
async def step_simulation() -> JSONResponse:
    await controller.step_once()
    return JSONResponse({"tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    interval = _require_number(payload, "tick_interval")
    controller.app_config.tick_interval = _clamp_value(interval, 1.0 / 240.0, 1.0)
    return JSONResponse({"tick_interval": controller.app_config.tick_interval})


@app.post("/api/population")
async def set_population(payload: dict) -> JSONResponse:
    target = await controller.set_population(int(_require_number(payload, "target")))
    return JSONResponse({"population": target})


@app.post("/api/multipliers")
async def set_multipliers(payload: dict) -> JSONResponse:
    config = controller.config
    if "speed" in payload:
        low, high = PARAMETER_RANGES["speed_multiplier"]
        config.speed_multiplier = _clamp_value(_require_number(payload, "speed"), low, high)
    if "size" in payload:
        low, high = PARAMETER_RANGES["size_multiplier"]
        config.size_multiplier = _clamp_value(_require_number(payload, "size"), low, high)
    return JSONResponse({"speed": config.speed_multiplier, "size": config.size_multiplier})


@app.post("/api/species/{index}")
async def update_species(index: int, payload: dict) -> JSONResponse:
    try:
        attributes = await controller.update_species(index, payload)
    except SpeciesIndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse(attributes)


@app.post("/api/interactions")
async def set_interaction(payload: dict) -> JSONResponse:
    actor = int(_require_number(payload, "actor"))
    target = int(_require_number(payload, "target"))
    value = _require_number(payload, "value")
    try:
        stored = await controller.set_interaction(actor, target, value)
    except SpeciesIndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return JSONResponse({"actor": actor, "target": target, "value": stored})


@app.post("/api/interactions/randomize")
async def randomize_parameters() -> JSONResponse:
    await controller.randomize()
    return JSONResponse(controller.config_payload())


@app.post("/api/interactions/reset")
async def reset_interactions() -> JSONResponse:
    await controller.reset_interactions()
    return JSONResponse(controller.config_payload())


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller", "SimulationController"]
