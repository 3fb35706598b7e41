import asyncio

from flocksim.app.server import SimulationController
from flocksim.sim.core.config import AppConfig, SimulationConfig


class RecordingClient:
    def __init__(self) -> None:
        self.sent = []

    async def send_text(self, text: str) -> None:
        self.sent.append(text)


def _controller() -> SimulationController:
    return SimulationController(
        AppConfig(simulation=SimulationConfig(initial_population=8), broadcast_interval=1)
    )


def _connect(controller: SimulationController) -> RecordingClient:
    client = RecordingClient()
    controller.clients.add(client)
    controller._client_last_sent[client] = -1
    return client


def test_snapshot_queue_ack_cleanup() -> None:
    controller = _controller()
    client = _connect(controller)

    async def exercise() -> None:
        await controller.step_once()
        await controller.step_once()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert queued_ticks == [1, 2]
        assert len(client.sent) == 2
        await controller.acknowledge(1)
        async with controller._queue_lock:
            remaining_ticks = [item.tick for item in controller._snapshot_queue]
        assert remaining_ticks == [2]

    asyncio.run(exercise())


def test_queue_keeps_only_latest_snapshot_without_clients() -> None:
    controller = _controller()

    async def exercise() -> None:
        for _ in range(300):
            await controller.step_once()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert queued_ticks == [300]

    asyncio.run(exercise())


def test_unacknowledged_backlog_is_capped() -> None:
    controller = _controller()
    client = _connect(controller)

    async def exercise() -> None:
        for _ in range(300):
            await controller.step_once()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert len(queued_ticks) < 300
        assert queued_ticks[-1] == 300
        assert queued_ticks == list(range(queued_ticks[0], 301))
        assert len(client.sent) == 300

    asyncio.run(exercise())


def test_reset_clears_queue_and_requeues_fresh_snapshot() -> None:
    controller = _controller()

    async def exercise() -> None:
        await controller.step_once()
        await controller.set_population(12)
        await controller.reset()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert queued_ticks == [0]
        assert len(controller.flock.agents) == 12

    asyncio.run(exercise())
