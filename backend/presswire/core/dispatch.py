"""Fire-and-forget side effects with their own failure channel.

Email dispatch after issuing a verification code must never fail the
request that triggered it. Instead of a bare try/except at the call site,
side effects are submitted here as asyncio tasks. The caller gets the task
back (tests await it); failures are logged and counted by a done-callback.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Runs coroutines in the background and records their failures.

    Lifecycle:
    - submit() schedules a coroutine on the running loop.
    - drain() waits for everything still pending (shutdown and tests).

    Attributes:
        failures: Number of side effects that raised.
        last_error: Most recent exception raised by a side effect.
    """

    def __init__(self) -> None:
        # Strong references so pending tasks are not garbage-collected
        self._pending: set[asyncio.Task[Any]] = set()
        self.failures = 0
        self.last_error: BaseException | None = None

    @property
    def pending_count(self) -> int:
        """Number of side effects not yet finished."""
        return len(self._pending)

    def submit(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule a side effect.

        Must be called from an async context (running event loop).

        Args:
            coro: Coroutine to run.
            name: Label used in logs.

        Returns:
            The scheduled task. Awaiting it re-raises the side effect's error.
        """
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.info("Side effect %s cancelled", task.get_name())
            return
        error = task.exception()
        if error is not None:
            self.failures += 1
            self.last_error = error
            logger.warning(
                "Side effect %s failed", task.get_name(), exc_info=error
            )

    async def drain(self) -> None:
        """Wait for all pending side effects. Their errors are not re-raised."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
