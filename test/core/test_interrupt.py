"""Tests for the interrupt bridge.

One interrupt source, two disciplines: hard cancellation in benchmark mode,
graceful stop in load-generation mode. Never both.
"""

from __future__ import annotations

import asyncio
import os
import signal

import pytest
from structlog.testing import capture_logs

from heyapm.core.control import RunContext, StopSignal
from heyapm.core.interrupt import GracefulStop, HardCancel, InterruptBridge, strategy_for
from heyapm.core.models import Mode


class TestStrategySelection:
    def test_benchmark_mode_hard_cancels(self):
        context, stop = RunContext(), StopSignal()
        strategy = strategy_for(Mode.BENCHMARK, context=context, stop_signal=stop)
        assert isinstance(strategy, HardCancel)
        assert strategy.context is context

    def test_load_mode_stops_gracefully(self):
        context, stop = RunContext(), StopSignal()
        strategy = strategy_for(Mode.LOAD, context=context, stop_signal=stop)
        assert isinstance(strategy, GracefulStop)
        assert strategy.stop_signal is stop


class TestInterrupt:
    def test_hard_cancel_cancels_context_once(self):
        context, stop = RunContext(), StopSignal()
        bridge = InterruptBridge(HardCancel(context))

        assert bridge.interrupt() is True
        assert bridge.interrupt() is False

        assert context.cancelled
        assert context.reason == "interrupt"
        assert not stop.fired
        assert bridge.interrupts == 2

    def test_graceful_stop_fires_signal_only(self):
        context, stop = RunContext(), StopSignal()
        bridge = InterruptBridge(GracefulStop(stop))

        assert bridge.interrupt() is True
        assert bridge.interrupt() is False

        assert stop.fired
        assert not context.cancelled

    def test_repeated_interrupts_are_logged_as_ignored(self):
        bridge = InterruptBridge(GracefulStop(StopSignal()))
        with capture_logs() as logs:
            bridge.interrupt()
            bridge.interrupt()

        events = [entry["event"] for entry in logs]
        assert events == ["hey.interrupt_stop", "hey.interrupt_ignored"]


class TestInstall:
    @pytest.mark.asyncio
    async def test_handler_restored_on_exit(self):
        previous = signal.getsignal(signal.SIGINT)
        bridge = InterruptBridge(GracefulStop(StopSignal()))

        with bridge.install():
            assert signal.getsignal(signal.SIGINT) is not previous

        assert signal.getsignal(signal.SIGINT) is previous

    @pytest.mark.asyncio
    async def test_sigint_routed_to_strategy(self):
        context = RunContext()
        bridge = InterruptBridge(HardCancel(context))

        with bridge.install():
            os.kill(os.getpid(), signal.SIGINT)
            await asyncio.wait_for(context.wait(), timeout=2.0)

        assert context.cancelled
        assert bridge.interrupts == 1
