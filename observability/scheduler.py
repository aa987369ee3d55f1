"""
Finalization Scheduler

Decides when ExecutionLogger.finish() actually runs relative to the
HTTP response.

DESIGN RULES:
- Scheduled work never raises into the caller
- Failures are logged, never retried
- BackgroundScheduler keeps a strong reference to every task until done
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class Scheduler(ABC):
    """
    Abstract base for finalization strategies.

    Implementations:
    - BackgroundScheduler (default, detached asyncio tasks)
    - InlineScheduler (awaits in place, deterministic for tests)
    """

    @abstractmethod
    async def schedule(self, work: Awaitable[None], name: str = "finalize") -> None:
        pass

    async def drain(self) -> None:
        """Wait for outstanding work. No-op unless work is detached."""
        return None


class InlineScheduler(Scheduler):
    """Runs the work before returning."""

    async def schedule(self, work: Awaitable[None], name: str = "finalize") -> None:
        try:
            await work
        except Exception as e:
            logger.error(f"[SCHEDULER] {name} failed: {e}", exc_info=True)


class BackgroundScheduler(Scheduler):
    """Runs the work as a detached task on the running event loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def schedule(self, work: Awaitable[None], name: str = "finalize") -> None:
        task = asyncio.ensure_future(work)
        self._tasks.add(task)
        task.add_done_callback(self._on_done(name))

    def _on_done(self, name: str):
        def callback(task: asyncio.Task) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                logger.warning(f"[SCHEDULER] {name} was cancelled")
                return
            error = task.exception()
            if error is not None:
                logger.error(f"[SCHEDULER] {name} failed: {error}", exc_info=error)

        return callback

    async def drain(self) -> None:
        if not self._tasks:
            return
        logger.info(f"[SCHEDULER] Draining {len(self._tasks)} pending task(s)")
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
