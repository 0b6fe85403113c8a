"""Cancellation token shared between a consumer and the receipt poller."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Cooperative teardown signal.

    Once cancelled, pollers stop at their next suspension point and the state
    machine stops publishing transitions for the operation.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""

        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
