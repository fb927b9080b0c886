"""
Background Task Queue
=====================

Runs persistence writes off the answer path while keeping their outcome
observable: every task is counted, failures are logged, kept in a
bounded list and forwarded to registered callbacks. Nothing is re-raised
into the caller.

Usage:
    queue = BackgroundTaskQueue()
    queue.submit("local_memory.append", memory.append(q, a, e))
    ...
    await queue.drain()
    print(queue.stats, queue.failures)
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

ErrorCallback = Callable[["TaskFailure"], None]


@dataclass
class TaskFailure:
    """A background task that raised."""
    name: str
    error: BaseException
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "error": f"{type(self.error).__name__}: {self.error}",
            "failed_at": self.failed_at.isoformat(),
        }


@dataclass
class TaskStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def pending(self) -> int:
        return self.submitted - self.completed - self.failed


class BackgroundTaskQueue:
    """Fire-and-forget coroutine runner with a completion/error channel."""

    def __init__(self, max_failures: int = 100):
        self.stats = TaskStats()
        self._failures: Deque[TaskFailure] = deque(maxlen=max_failures)
        self._tasks: Set[asyncio.Task] = set()
        self._callbacks: List[ErrorCallback] = []

    @property
    def failures(self) -> List[TaskFailure]:
        return list(self._failures)

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback invoked with every TaskFailure."""
        self._callbacks.append(callback)

    def submit(self, name: str, coro: Awaitable) -> asyncio.Task:
        """Schedule a coroutine on the running loop and return its task."""
        task = asyncio.ensure_future(self._run(name, coro))
        self.stats.submitted += 1
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, coro: Awaitable) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            self._record(name, asyncio.CancelledError(f"{name} cancelled"))
            raise
        except Exception as e:
            self._record(name, e)
        else:
            self.stats.completed += 1
            logger.debug(f"Background task done: {name}", extra={"task": name})

    def _record(self, name: str, error: BaseException) -> None:
        failure = TaskFailure(name=name, error=error)
        self.stats.failed += 1
        self._failures.append(failure)
        logger.warning(f"Background task failed: {name}: {error}", extra={"task": name})

        for callback in self._callbacks:
            try:
                callback(failure)
            except Exception as e:
                logger.error(f"Task error callback raised: {e}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every task submitted so far."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        await asyncio.wait(pending, timeout=timeout)

    async def close(self, timeout: float = 10.0) -> None:
        """Drain, then cancel whatever is still running."""
        await self.drain(timeout=timeout)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
