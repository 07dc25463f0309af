"""Tests for running domains concurrently and stopping them."""

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from ebs_operator.cache import ObjectCache
from ebs_operator.errors import OperatorStopped
from ebs_operator.loop import ControlLoop
from ebs_operator.orchestrator import Domain, Orchestrator
from ebs_operator.status import OperatorStatus


class BlockingInformer:
    """Informer stand-in that blocks until told to stop."""

    def __init__(self, kind: str) -> None:
        self.cache = ObjectCache(kind)
        self.started = threading.Event()
        self.stopped = threading.Event()

    def run(self, stop: threading.Event) -> None:
        """Block until stop is set."""
        self.started.set()
        stop.wait()
        self.stopped.set()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll predicate until it holds or timeout expires."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestOrchestrator:
    """Test running and stopping domains together."""

    @pytest.mark.asyncio
    async def test_failing_loop_does_not_halt_others(self) -> None:
        """Test that a loop failing repeatedly leaves the other domains running."""
        status = OperatorStatus()
        broken = MagicMock(side_effect=RuntimeError("apiserver unavailable"))
        healthy = MagicMock()
        management = Domain(
            "management",
            [ControlLoop("Broken", broken, resync_interval=60, initial_backoff=0.01, max_backoff=0.02, status=status)],
        )
        workload = Domain("workload", [ControlLoop("Healthy", healthy, resync_interval=0.01, status=status)])
        stop = asyncio.Event()

        run = asyncio.create_task(Orchestrator([management, workload], status).run(stop))
        await wait_until(lambda: broken.call_count >= 3 and healthy.call_count >= 3)
        stop.set()

        with pytest.raises(OperatorStopped):
            await run

        assert status.degraded() == ["BrokenDegraded"]

    @pytest.mark.asyncio
    async def test_stop_cancels_loops_and_informers(self) -> None:
        """Test that stop ends every loop and informer thread."""
        informer = BlockingInformer("ConfigMap")
        sync = MagicMock()
        domain = Domain("management", [ControlLoop("Static", sync, resync_interval=60)], [informer])
        orchestrator = Orchestrator([domain])
        stop = asyncio.Event()

        run = asyncio.create_task(orchestrator.run(stop))
        await wait_until(lambda: informer.started.is_set() and sync.call_count == 1)
        stop.set()

        with pytest.raises(OperatorStopped, match="stopped"):
            await run

        assert await asyncio.to_thread(informer.stopped.wait, 2.0)
        calls = sync.call_count
        await asyncio.sleep(0.05)
        assert sync.call_count == calls

    def test_loops(self) -> None:
        """Test that loops are listed in domain order."""
        a = ControlLoop("a", MagicMock())
        b = ControlLoop("b", MagicMock())

        orchestrator = Orchestrator([Domain("management", [a]), Domain("workload", [b])])

        assert orchestrator.loops() == [a, b]
