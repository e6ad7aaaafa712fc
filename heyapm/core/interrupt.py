"""Interrupt bridge: one external stop request, two cancellation disciplines.

The strategy is chosen once per run from the mode:

- ``HardCancel`` (benchmark mode) cancels the shared ``RunContext``. Partial
  benchmark output is not a valid basis for comparison, so it is abandoned.
- ``GracefulStop`` (load-generation mode) fires the broadcast ``StopSignal``.
  Workers stop generating and flush what they have.

Only the first interrupt has an effect; later ones are logged and ignored.
"""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from typing import Union

from heyapm.core.control import RunContext, StopSignal
from heyapm.core.models import Mode
from heyapm.logger import Logger, session_logger


@dataclass(frozen=True)
class HardCancel:
    context: RunContext

    name = "hard_cancel"

    def trigger(self) -> bool:
        return self.context.cancel("interrupt")


@dataclass(frozen=True)
class GracefulStop:
    stop_signal: StopSignal

    name = "graceful_stop"

    def trigger(self) -> bool:
        return self.stop_signal.fire("interrupt")


InterruptStrategy = Union[HardCancel, GracefulStop]


def strategy_for(mode: Mode, *, context: RunContext, stop_signal: StopSignal) -> InterruptStrategy:
    if mode == Mode.BENCHMARK:
        return HardCancel(context)
    return GracefulStop(stop_signal)


class InterruptBridge:
    """Routes SIGINT to the run's interrupt strategy.

    Use ``with bridge.install():`` from inside the running event loop; the
    previous handler is restored on exit. ``interrupt()`` can be called
    directly to simulate a signal.
    """

    def __init__(
        self,
        strategy: InterruptStrategy,
        *,
        logger: Logger | None = None,
        signals: tuple[int, ...] = (signal.SIGINT,),
    ) -> None:
        self._strategy = strategy
        self._logger = logger or session_logger
        self._signals = signals
        self._interrupts = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[int, object] = {}

    @property
    def strategy(self) -> InterruptStrategy:
        return self._strategy

    @property
    def interrupts(self) -> int:
        return self._interrupts

    def interrupt(self) -> bool:
        """Apply the strategy. Returns True only for the first effective interrupt."""
        self._interrupts += 1
        triggered = self._strategy.trigger()
        if not triggered:
            self._logger.info(
                "hey.interrupt_ignored",
                strategy=self._strategy.name,
                interrupts=self._interrupts,
            )
            return False

        if isinstance(self._strategy, HardCancel):
            self._logger.warning(
                "hey.interrupt_abort",
                strategy=self._strategy.name,
                detail="Interrupt signal received, aborting benchmark",
            )
        else:
            self._logger.warning(
                "hey.interrupt_stop",
                strategy=self._strategy.name,
                detail="Interrupt signal received, stopping load generator",
            )
        return True

    def install(self) -> "InterruptBridge":
        return self

    def __enter__(self) -> "InterruptBridge":
        self._loop = asyncio.get_running_loop()
        for signum in self._signals:
            try:
                self._previous[signum] = signal.signal(signum, self._handle_signal)
            except (ValueError, OSError) as exc:
                # Signals can only be installed from the main thread.
                self._logger.warning(
                    "hey.signal_install_failed",
                    signum=signum,
                    error=str(exc),
                )
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)  # type: ignore[arg-type]
            except (ValueError, OSError) as exc:
                self._logger.warning(
                    "hey.signal_restore_failed",
                    signum=signum,
                    error=str(exc),
                )
        self._previous.clear()
        self._loop = None
        return False

    def _handle_signal(self, signum: int, _frame) -> None:  # pragma: no cover
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.interrupt)
