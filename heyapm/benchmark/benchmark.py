from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Callable

from heyapm.benchmark.regression import judge
from heyapm.benchmark.store import AnalyticsStore
from heyapm.core.control import RunContext, StopSignal
from heyapm.core.models import UNLIMITED, BenchmarkReport, Configuration
from heyapm.exceptions import InterruptAbort, RegressionDetected
from heyapm.logger import Logger, session_logger
from heyapm.worker import Worker

BENCHMARK_NAME = "transactions-spans-errors"
BENCHMARK_INSTANCE_ID = "bench"


def benchmark_profile(config: Configuration) -> Configuration:
    """Fixed payload shape used for every benchmark run.

    User payload flags are ignored so results stay comparable across runs;
    only connection settings, timeouts and the seed carry over.
    """
    return dataclasses.replace(
        config,
        instances=1,
        start_jitter_bound=0.0,
        transaction_frequency=1e-9,
        transaction_limit=UNLIMITED,
        span_min_limit=10,
        span_max_limit=10,
        error_frequency=1e-3,
        error_limit=UNLIMITED,
        error_frame_min_limit=10,
        error_frame_max_limit=10,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Benchmark:
    """Benchmark facade.

    One fixed load pass, then a regression check of its accepted-events rate
    against the analytics store's history for the last
    ``regression_lookback_days`` days. The result is recorded whatever the
    verdict, unless the pass was interrupted or failed before recording
    started. Once the record call is issued the run is complete: an
    interrupt arriving during it no longer discards the result.
    """

    def __init__(
        self,
        store: AnalyticsStore,
        *,
        worker: Worker | None = None,
        name: str = BENCHMARK_NAME,
        clock: Callable[[], datetime] = _utc_now,
        logger: Logger | None = None,
    ) -> None:
        self._store = store
        self._logger = logger or session_logger
        self._worker = worker or Worker(logger=self._logger)
        self._name = name
        self._clock = clock

    async def run(self, context: RunContext, config: Configuration) -> BenchmarkReport:
        if config.regression_margin is None or config.regression_lookback_days is None:
            raise ValueError("benchmark requires a benchmark-mode configuration")

        self._logger.info(
            "hey.bench_start",
            benchmark=self._name,
            run_timeout=config.run_timeout,
            random_seed=config.random_seed,
        )

        stats = await self._worker.run(context, benchmark_profile(config), BENCHMARK_INSTANCE_ID, StopSignal())
        self._abort_if_cancelled(context, "load pass")

        metric = stats.events_per_second
        history = await self._store.fetch_metrics(self._name, config.regression_lookback_days)
        verdict = judge(metric, history, config.regression_margin)

        report = BenchmarkReport(
            name=self._name,
            metric=metric,
            timestamp=self._clock().isoformat(),
            seed=config.random_seed,
            service_name=config.service_name,
            apm_server_url=config.apm_server_url,
            stats=stats.to_dict(),
            baseline=verdict.baseline,
            regression=verdict.regression,
        )
        # Last point at which an interrupt keeps the result out of the history.
        self._abort_if_cancelled(context, "record")
        await self._store.record(report)

        self._logger.info(
            "hey.bench_result",
            benchmark=self._name,
            metric=round(metric, 2),
            baseline=verdict.baseline,
            margin=verdict.margin,
            samples=verdict.samples,
            regression=verdict.regression,
        )

        if verdict.regression:
            raise RegressionDetected(
                "benchmark throughput regressed",
                {
                    "benchmark": self._name,
                    "metric": round(metric, 2),
                    "baseline": verdict.baseline,
                    "margin": verdict.margin,
                    "lookback_days": config.regression_lookback_days,
                },
            )
        return report

    def _abort_if_cancelled(self, context: RunContext, stage: str) -> None:
        if context.cancelled:
            raise InterruptAbort(
                "benchmark interrupted, result discarded",
                {"benchmark": self._name, "stage": stage, "cause": context.reason},
            )
