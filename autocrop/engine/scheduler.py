"""Cancellable scheduling of detection cycles (start delay, periodic, one-shot)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from autocrop.engine.decision import CycleOutcome, CycleResult

LOGGER = logging.getLogger("autocrop.engine.scheduler")

CycleRunner = Callable[["CancelToken"], Awaitable[CycleOutcome]]


class CancelToken:
    """Cooperative cancellation for a chain of waits.

    ``cancel`` is idempotent and wakes any ``sleep`` in progress.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Wait ``seconds``; return False if cancelled before the time elapsed."""
        if self._cancelled:
            return False
        if self._event is None:
            self._event = asyncio.Event()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return not self._cancelled
        return False


class CycleScheduler:
    """Drives detection cycles for one playback session.

    Every task waits for the previously spawned task to finish, so cycles never overlap
    and a resumed driver always starts from an idle engine.
    """

    def __init__(
        self,
        run_cycle: CycleRunner,
        period_seconds: float,
        periodic: bool,
        start_delay_seconds: float = 0.0,
        oneshot_cycles: int = 1,
        on_stop: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._run_cycle = run_cycle
        self.period_seconds = period_seconds
        self.periodic = periodic
        self.start_delay_seconds = start_delay_seconds
        self.oneshot_cycles = oneshot_cycles
        self.on_stop = on_stop
        self.suspended = False
        self.started = False
        self.closed = False
        self._token: Optional[CancelToken] = None
        self._start_token: Optional[CancelToken] = None
        self._oneshot_pending = False
        self._oneshot_token: Optional[CancelToken] = None
        self._tail: Optional["asyncio.Task[Any]"] = None
        self._tasks: List["asyncio.Task[Any]"] = []

    @property
    def running(self) -> bool:
        return self._token is not None

    @property
    def start_pending(self) -> bool:
        return self._start_token is not None

    def start(self) -> None:
        """Arm the start-delay timer; the first run happens when it fires."""
        if self.closed or self.started or self._start_token is not None:
            return
        self._start_token = CancelToken()
        self._spawn(self._start_after, self._start_token, chain=False)

    def fire_start_now(self) -> None:
        if self._start_token is None:
            return
        self._start_token.cancel()
        self._fire_start()

    def request_once(self) -> None:
        """Run a one-shot request of ``oneshot_cycles`` back-to-back cycles."""
        if self.closed:
            return
        if self.suspended:
            self._oneshot_pending = True
            return
        self._cancel_token()
        self._token = CancelToken()
        self._oneshot_token = self._token
        self._spawn(self._oneshot, self._token)

    def suspend(self, reason: str) -> None:
        """Stop the driver and discard any in-flight cycle. Safe to call repeatedly."""
        if self._token is not None and self._token is self._oneshot_token:
            # an unfinished one-shot request runs again on the next resume
            self._oneshot_pending = True
        self._cancel_token()
        if not self.suspended:
            LOGGER.info("Stop by %s event.", reason)
        self.suspended = True
        if self.on_stop is not None:
            self.on_stop(reason)

    def resume(self, reason: str, playback_time: Optional[float] = None) -> None:
        if self.closed:
            return
        self.suspended = False
        if self.started and self.periodic and self._token is None:
            self._start_driver()
            LOGGER.info("Resumed by %s event.", reason)
        elif self._oneshot_pending:
            self._oneshot_pending = False
            self.request_once()
        if (
            self._start_token is not None
            and playback_time is not None
            and playback_time > self.start_delay_seconds
        ):
            self.fire_start_now()

    def shutdown(self) -> None:
        self.closed = True
        self._cancel_token()
        if self._start_token is not None:
            self._start_token.cancel()
            self._start_token = None
        self._oneshot_pending = False

    async def wait_idle(self) -> None:
        """Wait until every spawned task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire_start(self) -> None:
        self._start_token = None
        self.started = True
        if self.closed:
            return
        if not self.periodic:
            self.request_once()
        elif self.suspended:
            LOGGER.debug("Start delay elapsed while suspended; driver waits for resume")
        else:
            self._start_driver()

    def _start_driver(self) -> None:
        self._cancel_token()
        self._token = CancelToken()
        self._spawn(self._drive, self._token)

    def _cancel_token(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def _release(self, token: CancelToken) -> None:
        if self._token is token:
            self._token = None

    async def _start_after(self, token: CancelToken) -> None:
        if await token.sleep(self.start_delay_seconds):
            self._fire_start()

    async def _drive(self, token: CancelToken) -> None:
        LOGGER.debug("Periodic driver started period=%.2fs", self.period_seconds)
        try:
            while await token.sleep(self.period_seconds):
                outcome = await self._run_cycle(token)
                if outcome.result is CycleResult.INSUFFICIENT_TIME:
                    self._release(token)
                    self.suspend("no-time")
                    return
                if outcome.result.stops_driver or token.cancelled:
                    return
        finally:
            self._release(token)

    async def _oneshot(self, token: CancelToken) -> None:
        try:
            for _ in range(self.oneshot_cycles):
                outcome = await self._run_cycle(token)
                if outcome.result is CycleResult.INSUFFICIENT_TIME:
                    self._release(token)
                    self.suspend("no-time")
                    return
                if outcome.result is CycleResult.APPLIED or outcome.result.stops_driver:
                    return
                if token.cancelled:
                    return
        finally:
            self._release(token)

    def _spawn(self, func: Callable[[CancelToken], Awaitable[None]], token: CancelToken, chain: bool = True) -> None:
        previous = self._tail if chain else None
        task = asyncio.create_task(self._after(previous, func, token))
        if chain:
            self._tail = task
        self._tasks.append(task)
        task.add_done_callback(self._task_done)

    @staticmethod
    async def _after(
        previous: Optional["asyncio.Task[Any]"],
        func: Callable[[CancelToken], Awaitable[None]],
        token: CancelToken,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        if token.cancelled:
            return
        await func(token)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        if task in self._tasks:
            self._tasks.remove(task)
        if self._tail is task:
            self._tail = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Scheduler task failed: %s", exc, exc_info=exc)
