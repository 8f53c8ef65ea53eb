"""Fixed-interval poll scheduling with cooperative cancellation.

The scheduler forms a timer chain: sleep one interval, run the poll, and only
then schedule the next one, so polls never overlap. The poll callback
decides whether to continue by returning True.

The chain opens with a sleep, so nothing is polled when the push is sent and
the Nth poll lands at N intervals.

Cancellation is cooperative: the CancellationToken is checked after every
sleep and by the poll callback before it applies a result. The sleeping task
is also cancelled so teardown does not wait for the interval to elapse.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Poll = Callable[[], Awaitable[bool]]


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class PollScheduler:
    def __init__(self, interval_seconds: float, sleep: Sleep = asyncio.sleep) -> None:
        self.interval_seconds = interval_seconds
        self.token = CancellationToken()
        self.polls_fired = 0
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, poll: Poll) -> asyncio.Task:
        if self._task is not None:
            raise RuntimeError("Poll scheduler can only be started once")
        self._task = asyncio.create_task(self._run(poll))
        return self._task

    async def _run(self, poll: Poll) -> None:
        try:
            while not self.token.cancelled:
                await self._sleep(self.interval_seconds)
                if self.token.cancelled:
                    break
                self.polls_fired += 1
                if not await poll():
                    break
        except asyncio.CancelledError:
            if not self.token.cancelled:
                raise
            asyncio.current_task().uncancel()
            logger.debug("Poll loop cancelled", polls_fired=self.polls_fired)

    def cancel(self) -> None:
        """Stop the chain; no poll is started after this returns."""
        self.token.cancel()
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        """Wait for the chain to finish, however it ends."""
        if self._task is not None:
            await asyncio.wait({self._task})
