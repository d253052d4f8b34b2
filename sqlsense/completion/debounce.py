"""Async debounce helpers used by the completion engine."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class AdaptiveDelay:
    """Debounce delay that grows with the size of the document being edited."""

    short: float = 0.08
    medium: float = 0.10
    long: float = 0.15
    medium_threshold: int = 200
    long_threshold: int = 500

    def for_length(self, length: int) -> float:
        if length > self.long_threshold:
            return self.long
        if length > self.medium_threshold:
            return self.medium
        return self.short


class Debouncer:
    """Utility that coalesces rapid-fire calls into a single coroutine run."""

    def __init__(self, delay: float = 0.15) -> None:
        self._delay = delay
        self._task: asyncio.Task[Any] | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(
        self,
        coro_factory: Callable[[], Awaitable[Any]],
        delay: float | None = None,
    ) -> asyncio.Task[Any]:
        """Schedule a coroutine, cancelling any pending invocation."""

        if self._task:
            self._task.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._runner(coro_factory, self._delay if delay is None else delay))
        return self._task

    def cancel(self) -> None:
        """Cancel any pending invocation."""

        if self._task:
            self._task.cancel()
            self._task = None

    async def _runner(self, coro_factory: Callable[[], Awaitable[Any]], delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await coro_factory()
        except asyncio.CancelledError:
            return


__all__ = ["AdaptiveDelay", "Debouncer"]
