"""Cancellation handle for polling loops.

A CancelToken is checked at every suspension point of an orchestrator, so a
superseded request stops polling instead of running to its terminal state.
"""
import asyncio

from .errors import PollCancelledError


class CancelToken:
    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PollCancelledError(self.reason or "Cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, waking early (and raising) on cancellation."""
        self.raise_if_cancelled()
        if seconds > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        else:
            await asyncio.sleep(0)
        self.raise_if_cancelled()


async def pause(seconds: float, cancel: CancelToken | None = None) -> None:
    """Fixed-interval wait between polls, honouring an optional token."""
    if cancel is None:
        await asyncio.sleep(seconds)
    else:
        await cancel.sleep(seconds)
