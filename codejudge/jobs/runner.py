# codejudge/jobs/runner.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Set

logger = logging.getLogger("jobs")

JobFactory = Callable[[], Awaitable[None]]


class BackgroundJobRunner:
    """Detached asyncio tasks that outlive the request that submitted them.

    Every job starts as soon as it is submitted; nothing queues behind a busy slot, so a job's
    own deadline is the only thing bounding it. ``max_concurrency`` is an admission limit that
    callers check through ``saturated`` before taking on more work. Strong references are kept
    until each task finishes.
    """

    def __init__(self, max_concurrency: int = 32) -> None:
        self.max_concurrency = max(1, max_concurrency)
        self._tasks: Set[asyncio.Task] = set()
        self._closing = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def saturated(self) -> bool:
        return len(self._tasks) >= self.max_concurrency

    async def submit(self, name: str, factory: JobFactory) -> asyncio.Task:
        if self._closing:
            raise RuntimeError("job runner is shutting down")
        task = asyncio.create_task(self._run(name, factory), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("job scheduled name=%s in_flight=%d", name, len(self._tasks))
        return task

    async def _run(self, name: str, factory: JobFactory) -> None:
        try:
            await factory()
        except asyncio.CancelledError:
            logger.info("job cancelled name=%s", name)
            raise
        except Exception:
            logger.exception("job failed name=%s", name)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Wait up to ``timeout`` seconds for in-flight jobs, then cancel the rest."""
        self._closing = True
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info("job runner draining %d task(s)", len(tasks))
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("job runner cancelled %d unfinished task(s)", len(still_running))


class ImmediateJobRunner:
    """Runs each job inline; the caller's ``await submit(...)`` returns once the job is done."""

    def __init__(self) -> None:
        self.completed: list[str] = []

    @property
    def saturated(self) -> bool:
        return False

    async def submit(self, name: str, factory: JobFactory) -> None:
        try:
            await factory()
        except Exception:
            logger.exception("job failed name=%s", name)
        self.completed.append(name)

    async def shutdown(self, timeout: float = 5.0) -> None:
        return None
