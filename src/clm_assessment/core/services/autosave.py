"""Single-slot debounced autosave.

At most one flush is scheduled per session. Arming again before the delay
elapses cancels the pending timer and starts a new one, so a burst of edits
produces one save carrying the latest state.
"""

import asyncio
from collections.abc import Awaitable, Callable

from clm_assessment.observability import get_logger

logger = get_logger(__name__)

FlushCallback = Callable[[str], Awaitable[None]]


class AutosaveDebouncer:
    """Debounces flush calls per session on the running event loop.

    Args:
        flush: Coroutine function persisting a session's pending state.
        delay_seconds: Quiet period before a flush fires; 0 disables the delay
            and each arm schedules the flush immediately.
    """

    def __init__(self, flush: FlushCallback, delay_seconds: float = 1.0) -> None:
        self._flush = flush
        self._delay = max(0.0, delay_seconds)
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: dict[str, set[asyncio.Task[None]]] = {}

    @property
    def delay_seconds(self) -> float:
        return self._delay

    def arm(self, session_id: str) -> None:
        """Schedule a flush for ``session_id``, replacing any pending one."""
        existing = self._timers.pop(session_id, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        if self._delay <= 0:
            self._fire(session_id)
            return
        self._timers[session_id] = loop.call_later(self._delay, self._fire, session_id)

    def is_pending(self, session_id: str) -> bool:
        return session_id in self._timers

    def disarm(self, session_id: str) -> bool:
        """Cancel the pending timer without touching running flushes."""
        existing = self._timers.pop(session_id, None)
        if existing is None:
            return False
        existing.cancel()
        return True

    def _fire(self, session_id: str) -> None:
        self._timers.pop(session_id, None)
        task = asyncio.get_running_loop().create_task(self._run(session_id))
        tasks = self._running.setdefault(session_id, set())
        tasks.add(task)
        task.add_done_callback(lambda done: self._forget(session_id, done))

    def _forget(self, session_id: str, task: asyncio.Task[None]) -> None:
        tasks = self._running.get(session_id)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            self._running.pop(session_id, None)

    async def _run(self, session_id: str) -> None:
        try:
            await self._flush(session_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Debounced autosave failed", session_id=session_id)

    async def flush_now(self, session_id: str) -> None:
        """Cancel any pending timer, wait for running flushes, then flush.

        Errors from the flush propagate to the caller.
        """
        existing = self._timers.pop(session_id, None)
        if existing is not None:
            existing.cancel()
        await self.wait_idle(session_id)
        await self._flush(session_id)

    def cancel(self, session_id: str) -> bool:
        """Drop the pending timer and cancel in-flight flushes for a session.

        Returns:
            True if anything was pending or running.
        """
        cancelled = False
        existing = self._timers.pop(session_id, None)
        if existing is not None:
            existing.cancel()
            cancelled = True
        for task in list(self._running.get(session_id, ())):
            task.cancel()
            cancelled = True
        if cancelled:
            logger.info("Autosave cancelled", session_id=session_id)
        return cancelled

    async def wait_idle(self, session_id: str | None = None) -> None:
        """Wait until running flushes (for one session or all) have finished."""
        if session_id is None:
            tasks = [task for group in self._running.values() for task in group]
        else:
            tasks = list(self._running.get(session_id, ()))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def close(self) -> None:
        """Cancel every pending timer and running flush."""
        for session_id in list(self._timers) + list(self._running):
            self.cancel(session_id)
