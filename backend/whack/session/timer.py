"""
Cancelable one-shot timers for the session spawn loop and empty-session cleanup.

Each timer is a handle around at most one pending asyncio task. Arming an
armed timer replaces the pending callback, so a handle can never have two
callbacks in flight.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class OneShotTimer:
    """
    Fire a coroutine callback once after a delay unless canceled first.

    The handle is released before the callback runs, so the callback may
    re-arm the same timer and `pending` reads False while it executes.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, delay: float, on_fire: Callable[[], Awaitable[None]]) -> None:
        """Arm the timer, replacing any callback still pending."""
        self.cancel()
        self._task = asyncio.create_task(self._run(delay, on_fire), name=f"timer:{self._name}")

    def cancel(self) -> None:
        """Drop the pending callback. No-op when nothing is pending."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def _run(self, delay: float, on_fire: Callable[[], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        if self._task is asyncio.current_task():
            self._task = None
        try:
            await on_fire()
        except (RuntimeError, OSError, ValueError):  # fmt: skip
            logger.exception("timer callback failed", timer=self._name)
