from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Generic, TypeVar

from heyapm.core.control import RunContext
from heyapm.logger import Logger, session_logger

T = TypeVar("T")


class TaskGroup(Generic[T]):
    """Fan-out/join over tasks sharing one ``RunContext``.

    - ``wait()`` returns only after every member has terminated.
    - The first member to raise cancels the shared context so siblings wind
      down promptly; its exception is the group's only reported error.
    - Later failures are logged and otherwise dropped.
    """

    def __init__(self, context: RunContext, *, logger: Logger | None = None) -> None:
        self._context = context
        self._logger = logger or session_logger
        self._tasks: list[asyncio.Task[T | None]] = []
        self._first_error: BaseException | None = None
        self._first_error_member: str | None = None
        self._failures = 0

    @property
    def context(self) -> RunContext:
        return self._context

    @property
    def failures(self) -> int:
        return self._failures

    def spawn(self, awaitable: Awaitable[T], *, name: str) -> asyncio.Task[T | None]:
        task = asyncio.create_task(self._guard(awaitable, name), name=name)
        self._tasks.append(task)
        return task

    async def wait(self) -> BaseException | None:
        """Wait for all members and return the first error, if any."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        return self._first_error

    def results(self) -> list[T]:
        """Return values of members that completed without error."""
        values: list[T] = []
        for task in self._tasks:
            if task.done() and not task.cancelled() and task.exception() is None:
                value = task.result()
                if value is not None:
                    values.append(value)
        return values

    async def _guard(self, awaitable: Awaitable[T], name: str) -> T | None:
        try:
            return await awaitable
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._record_failure(name, exc)
            return None

    def _record_failure(self, name: str, exc: Exception) -> None:
        self._failures += 1
        details: dict[str, Any] = {
            "member": name,
            "error_type": type(exc).__name__,
            "error": str(exc),
        }

        if self._first_error is None:
            self._first_error = exc
            self._first_error_member = name
            self._context.cancel(f"{name} failed")
            self._logger.error("hey.task_failed", first=True, **details)
            return

        self._logger.warning(
            "hey.task_failed",
            first=False,
            first_member=self._first_error_member,
            **details,
        )
