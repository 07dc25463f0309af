"""Runs every control loop of every domain until stopped."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field

from ebs_operator.errors import OperatorStopped
from ebs_operator.kube import KubeInformer
from ebs_operator.loop import ControlLoop
from ebs_operator.status import OperatorStatus

logger = logging.getLogger(__name__)


@dataclass
class Domain:
    """Loops and informers bound to one cluster.

    Attributes:
        name: Domain name ("management" or "workload")
        loops: Control loops, one per controller
        informers: Informers feeding the caches the loops read
    """

    name: str
    loops: list[ControlLoop] = field(default_factory=list)
    informers: list[KubeInformer] = field(default_factory=list)


class Orchestrator:
    """Starts informers and loops of all domains and stops them together."""

    def __init__(self, domains: list[Domain], status: OperatorStatus | None = None) -> None:
        self.domains = list(domains)
        self.status = status if status is not None else OperatorStatus()

    def loops(self) -> list[ControlLoop]:
        return [loop for domain in self.domains for loop in domain.loops]

    def _start_informers(self, stop: threading.Event) -> list[threading.Thread]:
        threads = []
        for domain in self.domains:
            for informer in domain.informers:
                cache = informer.cache
                # Daemon threads: a blocked watch must not hold up shutdown
                thread = threading.Thread(
                    target=informer.run,
                    args=(stop,),
                    name=f"{domain.name}-{cache.kind}-{cache.namespace or 'cluster'}",
                    daemon=True,
                )
                thread.start()
                threads.append(thread)
        return threads

    async def run(self, stop: asyncio.Event) -> None:
        """Run until stop is set.

        Raises:
            OperatorStopped: Always, once every loop has stopped
        """
        informer_stop = threading.Event()
        threads = self._start_informers(informer_stop)

        tasks = []
        for domain in self.domains:
            for loop in domain.loops:
                tasks.append(asyncio.create_task(loop.run(), name=f"{domain.name}/{loop.name}"))
        logger.info(
            "Started %d control loop(s) and %d informer(s) in %d domain(s)",
            len(tasks),
            len(threads),
            len(self.domains),
        )

        try:
            await stop.wait()
        finally:
            informer_stop.set()
            for task in tasks:
                task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for task, result in zip(tasks, results):
                if isinstance(result, Exception):
                    logger.error("Loop %s exited with %s: %s", task.get_name(), type(result).__name__, result)

        logger.info("All control loops stopped")
        raise OperatorStopped()
