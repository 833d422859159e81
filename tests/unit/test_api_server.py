import asyncio
import time

import pytest
from fastapi.testclient import TestClient

import api_server
from api.routes import set_runtime
from config.settings import settings
from services.sessions import InterviewRuntime
from storage.port import MemoryPort


class FailingFirstTick(InterviewRuntime):
    def __init__(self, port):
        super().__init__(port)
        self.ticks = 0
        self.flushes = 0

    def tick(self, now=None):
        self.ticks += 1
        if self.ticks == 1:
            raise RuntimeError("medium unavailable")
        return super().tick(now)

    def flush_now(self):
        self.flushes += 1
        return super().flush_now()


@pytest.fixture(autouse=True)
def fast_ticks(monkeypatch):
    monkeypatch.setattr(settings, "TICK_SECONDS", 0.01)
    yield
    set_runtime(None)


def test_tick_loop_keeps_running_after_a_failure():
    runtime = FailingFirstTick(MemoryPort())

    async def run_for_a_while():
        task = asyncio.create_task(api_server._tick_forever(runtime))
        await asyncio.sleep(0.2)
        still_running = not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return still_running

    assert asyncio.run(run_for_a_while())
    assert runtime.ticks >= 2


def test_shutdown_flushes_even_after_a_failed_tick():
    runtime = FailingFirstTick(MemoryPort())
    app = api_server.create_app(runtime)
    with TestClient(app) as client:
        assert client.post("/api/candidates", json={"id": "C1", "name": "Ada"}).status_code == 201
        time.sleep(0.2)
    assert runtime.ticks >= 2
    assert runtime.flushes == 1
    assert runtime.repository.port.get(settings.PRIMARY_KEY) is not None
