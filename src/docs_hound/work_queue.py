from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[None]]


class WorkQueue:
    """Bounded asyncio work queue with a minimum spacing between dispatches.

    At most `concurrency` tasks run at once, and no two tasks start less
    than `interval_s` apart. Spacing is independent of concurrency, so a
    wide queue still cannot burst.

    The queue must be used from a single running event loop.
    """

    def __init__(self, *, concurrency: int, interval_s: float = 0.0) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if interval_s < 0:
            raise ValueError(f"interval_s must be >= 0, got {interval_s}")

        self.concurrency = concurrency
        self.interval_s = interval_s

        self._waiting: deque[TaskFactory] = deque()
        self._running: set[asyncio.Task[None]] = set()
        self._last_dispatch_at: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._error: BaseException | None = None

    @property
    def size(self) -> int:
        return len(self._waiting)

    @property
    def pending(self) -> int:
        return len(self._running)

    def add(self, factory: TaskFactory) -> None:
        self._waiting.append(factory)
        self._idle.clear()
        self._dispatch()

    async def on_idle(self) -> None:
        await self._idle.wait()
        if self._error is not None:
            error, self._error = self._error, None
            raise error

    def _dispatch(self) -> None:
        loop = asyncio.get_running_loop()

        while self._waiting and len(self._running) < self.concurrency:
            now = loop.time()
            if self._last_dispatch_at is not None:
                wait_s = self._last_dispatch_at + self.interval_s - now
                if wait_s > 0:
                    if self._timer is None:
                        self._timer = loop.call_later(wait_s, self._on_timer)
                    return

            factory = self._waiting.popleft()
            self._last_dispatch_at = now
            task = loop.create_task(self._run(factory))
            self._running.add(task)
            task.add_done_callback(self._on_done)

        self._check_idle()

    def _on_timer(self) -> None:
        self._timer = None
        self._dispatch()

    async def _run(self, factory: TaskFactory) -> None:
        await factory()

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._running.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Queue task failed: %r", task.exception())
            if self._error is None:
                self._error = task.exception()
        self._dispatch()

    def _check_idle(self) -> None:
        if not self._waiting and not self._running:
            self._idle.set()
