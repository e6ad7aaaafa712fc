from __future__ import annotations

import time
from random import Random
from typing import Protocol

from heyapm.core.control import RunContext, StopSignal, wait_any
from heyapm.core.group import TaskGroup
from heyapm.core.interrupt import InterruptBridge, strategy_for
from heyapm.core.models import BenchmarkReport, Configuration, Mode, RunResult, WorkerStats
from heyapm.core.timeparse import format_seconds
from heyapm.exceptions import InterruptAbort, RegressionDetected
from heyapm.logger import Logger, session_logger


class WorkerFacade(Protocol):
    async def run(
        self,
        context: RunContext,
        config: Configuration,
        instance_id: str,
        stop_signal: StopSignal,
    ) -> WorkerStats: ...


class BenchmarkFacade(Protocol):
    async def run(self, context: RunContext, config: Configuration) -> BenchmarkReport: ...


class Orchestrator:
    """Top-level control of a run.

    Load-generation mode fans out ``config.instances`` worker tasks with
    randomized start jitter and graceful-stop semantics on interrupt.
    Benchmark mode hands the whole run to the benchmark facade with
    hard-cancel semantics on interrupt. Either way the outcome is a single
    ``RunResult`` carrying at most one error.
    """

    def __init__(
        self,
        config: Configuration,
        *,
        rng: Random,
        worker: WorkerFacade | None = None,
        benchmark: BenchmarkFacade | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._rng = rng
        self._logger = logger or session_logger
        self._worker = worker
        self._benchmark = benchmark

    async def run(self) -> RunResult:
        """Run in the configured mode with SIGINT routed to that mode's strategy."""
        context = RunContext()
        stop_signal = StopSignal()
        bridge = InterruptBridge(
            strategy_for(self._config.mode, context=context, stop_signal=stop_signal),
            logger=self._logger,
        )

        self._logger.info(
            "hey.run_start",
            mode=self._config.mode.value,
            instances=self._config.instances if self._config.mode == Mode.LOAD else 1,
            apm_server_url=self._config.apm_server_url,
            run_timeout=self._config.run_timeout,
            flush_timeout=self._config.flush_timeout,
            random_seed=self._config.random_seed,
            interrupt_strategy=bridge.strategy.name,
        )

        with bridge.install():
            if self._config.mode == Mode.BENCHMARK:
                result = await self.run_benchmark(context)
            else:
                result = await self.run_load(stop_signal, context)

        self._log_result(result)
        return result

    def draw_jitter(self) -> list[float]:
        """Start delays for every instance, drawn in instance-index order.

        Each value lies in ``[0, start_jitter_bound)``.
        """
        bound = self._config.start_jitter_bound
        return [self._rng.random() * bound for _ in range(self._config.instances)]

    async def run_load(self, stop_signal: StopSignal, context: RunContext | None = None) -> RunResult:
        context = context or RunContext()
        started = time.monotonic()

        if self._config.instances == 0:
            self._logger.info("hey.no_instances")
            return RunResult(mode=Mode.LOAD, started_at_monotonic=started, ended_at_monotonic=time.monotonic())

        worker = self._worker or self._default_worker()
        delays = self.draw_jitter()

        group: TaskGroup[WorkerStats] = TaskGroup(context, logger=self._logger)
        for index, delay in enumerate(delays):
            group.spawn(
                self._run_instance(worker, index, delay, context, stop_signal),
                name=f"instance-{index}",
            )

        error = await group.wait()
        return RunResult(
            mode=Mode.LOAD,
            started_at_monotonic=started,
            ended_at_monotonic=time.monotonic(),
            error=error,
            stats=group.results(),
        )

    async def run_benchmark(self, context: RunContext) -> RunResult:
        started = time.monotonic()
        benchmark = self._benchmark
        owned_store = None
        if benchmark is None:
            benchmark, owned_store = self._default_benchmark()

        report: BenchmarkReport | None = None
        error: BaseException | None = None
        try:
            report = await benchmark.run(context, self._config)
        except Exception as exc:
            error = exc
        finally:
            if owned_store is not None:
                await owned_store.aclose()

        if context.cancelled:
            if error is None:
                # The facade finished (and recorded) before it saw the interrupt.
                self._logger.info(
                    "hey.interrupt_after_record",
                    benchmark=report.name if report is not None else None,
                    cause=context.reason,
                )
            elif not isinstance(error, (InterruptAbort, RegressionDetected)):
                # A regression verdict was recorded; any other failure is not a valid result.
                error = InterruptAbort("benchmark interrupted, result discarded", {"cause": context.reason})

        return RunResult(
            mode=Mode.BENCHMARK,
            started_at_monotonic=started,
            ended_at_monotonic=time.monotonic(),
            error=error,
            benchmark=report,
        )

    async def _run_instance(
        self,
        worker: WorkerFacade,
        index: int,
        delay: float,
        context: RunContext,
        stop_signal: StopSignal,
    ) -> WorkerStats | None:
        instance_id = str(index)
        self._logger.info("hey.instance_start", instance_id=instance_id, delay=format_seconds(delay))

        if await wait_any(delay, context, stop_signal):
            self._logger.info(
                "hey.instance_skipped",
                instance_id=instance_id,
                cancelled=context.cancelled,
                stopped=stop_signal.fired,
            )
            return None

        return await worker.run(context, self._config, instance_id, stop_signal)

    def _default_worker(self) -> WorkerFacade:
        from heyapm.worker import Worker

        return Worker(logger=self._logger)

    def _default_benchmark(self):
        from heyapm.benchmark import Benchmark, ElasticsearchStore

        store = ElasticsearchStore(self._config.es_url, auth=self._config.es_auth, logger=self._logger)
        return Benchmark(store, logger=self._logger), store

    def _log_result(self, result: RunResult) -> None:
        if result.ok:
            self._logger.info(
                "hey.run_end",
                mode=result.mode.value,
                duration_seconds=round(result.duration_seconds, 3),
                events_accepted=result.events_accepted,
                throughput_eps=round(result.throughput_eps, 2),
            )
            return

        self._logger.error(
            "hey.run_failed",
            mode=result.mode.value,
            duration_seconds=round(result.duration_seconds, 3),
            error_type=type(result.error).__name__,
            error=str(result.error),
        )
