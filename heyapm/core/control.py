"""Run-wide control primitives.

``RunContext`` is the shared hard-cancellation context: once cancelled every
task is expected to abort without draining. ``StopSignal`` is the one-shot
broadcast graceful-stop flag: tasks stop producing new load but finish their
flush. Both are write-once per run and safe to trigger repeatedly.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable


class _Flag:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def _trigger(self, reason: str) -> bool:
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()


class RunContext(_Flag):
    """Shared cancellation context for all tasks of a run."""

    @property
    def cancelled(self) -> bool:
        return self.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the context. Returns True only for the call that cancelled it."""
        return self._trigger(reason)


class StopSignal(_Flag):
    """One-shot broadcast request to stop generating load and drain."""

    @property
    def fired(self) -> bool:
        return self.is_set()

    def fire(self, reason: str = "stop requested") -> bool:
        """Fire the signal. Returns True only for the call that fired it."""
        return self._trigger(reason)


async def wait_any(timeout: float | None, *flags: _Flag) -> bool:
    """Sleep up to ``timeout`` seconds, waking early when any flag is set.

    Returns True if a flag is set on return, False if the timeout elapsed.
    """
    if any(flag.is_set() for flag in flags):
        return True
    if timeout is not None and timeout <= 0:
        return False
    if not flags:
        await asyncio.sleep(timeout or 0)
        return False

    waiters = [asyncio.ensure_future(flag.wait()) for flag in flags]
    try:
        await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()
        await asyncio.gather(*waiters, return_exceptions=True)
    return any(flag.is_set() for flag in flags)


async def unless_cancelled(context: RunContext, awaitable: Awaitable[Any]) -> bool:
    """Await ``awaitable`` unless ``context`` is cancelled first.

    Returns True if the awaitable completed; its exception, if any, is
    re-raised. Returns False if the context was cancelled first, in which
    case the awaitable has been cancelled and awaited.
    """
    if context.cancelled:
        # Close the never-started coroutine.
        task = asyncio.ensure_future(awaitable)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return False

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(context.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for pending in (task, waiter):
            if not pending.done():
                pending.cancel()
        await asyncio.gather(task, waiter, return_exceptions=True)

    if task.cancelled():
        return False
    task.result()
    return True
