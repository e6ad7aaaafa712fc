"""Tests for the benchmark facade: fixed pass, regression check, history."""

from __future__ import annotations

from datetime import timedelta

import pytest

from heyapm.benchmark import BENCHMARK_NAME, Benchmark, JsonFileStore, benchmark_profile
from heyapm.core.control import RunContext
from heyapm.core.models import UNLIMITED, BenchmarkReport, Mode
from heyapm.exceptions import AnalyticsStoreError, InterruptAbort, RegressionDetected

from conftest import FIXED_NOW, StatsWorker, make_config


def _bench_config(**overrides):
    config, _ = make_config(mode=Mode.BENCHMARK, **overrides)
    return config


async def _seed_history(store, *metrics, age=timedelta(hours=1)):
    for metric in metrics:
        await store.record(
            BenchmarkReport(
                name=BENCHMARK_NAME,
                metric=metric,
                timestamp=(FIXED_NOW - age).isoformat(),
                seed=1,
                service_name="hey-service",
                apm_server_url="http://apm.test:8200",
            )
        )


class TestBenchmark:
    @pytest.mark.asyncio
    async def test_first_run_records_without_baseline(self, store_path, fixed_clock):
        store = JsonFileStore(store_path, clock=fixed_clock)
        benchmark = Benchmark(store, worker=StatsWorker(), clock=fixed_clock)

        report = await benchmark.run(RunContext(), _bench_config())

        assert report.metric == pytest.approx(1000.0)
        assert report.baseline is None
        assert not report.regression
        assert report.timestamp == FIXED_NOW.isoformat()
        assert [r.metric for r in store.load_reports()] == [pytest.approx(1000.0)]

    @pytest.mark.asyncio
    async def test_within_margin_passes(self, store_path, fixed_clock):
        store = JsonFileStore(store_path, clock=fixed_clock)
        await _seed_history(store, 900.0, 1050.0)
        benchmark = Benchmark(store, worker=StatsWorker(), clock=fixed_clock)

        report = await benchmark.run(RunContext(), _bench_config())

        assert report.baseline == 1050.0
        assert not report.regression

    @pytest.mark.asyncio
    async def test_regression_raises_but_is_recorded(self, store_path, fixed_clock):
        store = JsonFileStore(store_path, clock=fixed_clock)
        await _seed_history(store, 1200.0)
        benchmark = Benchmark(store, worker=StatsWorker(), clock=fixed_clock)

        with pytest.raises(RegressionDetected) as excinfo:
            await benchmark.run(RunContext(), _bench_config())

        assert excinfo.value.details["baseline"] == 1200.0
        reports = store.load_reports()
        assert len(reports) == 2
        assert reports[-1].regression

    @pytest.mark.asyncio
    async def test_history_outside_lookback_ignored(self, store_path, fixed_clock):
        store = JsonFileStore(store_path, clock=fixed_clock)
        await _seed_history(store, 5000.0, age=timedelta(days=30))
        benchmark = Benchmark(store, worker=StatsWorker(), clock=fixed_clock)

        report = await benchmark.run(RunContext(), _bench_config(regression_lookback_days="7"))

        assert report.baseline is None

    @pytest.mark.asyncio
    async def test_custom_margin(self, store_path, fixed_clock):
        store = JsonFileStore(store_path, clock=fixed_clock)
        await _seed_history(store, 1900.0)
        benchmark = Benchmark(store, worker=StatsWorker(), clock=fixed_clock)

        report = await benchmark.run(RunContext(), _bench_config(regression_margin=2.0))

        assert not report.regression

    @pytest.mark.asyncio
    async def test_cancel_discards_result(self, store_path, fixed_clock):
        store = JsonFileStore(store_path, clock=fixed_clock)
        worker = StatsWorker(on_run=lambda context: context.cancel("interrupt"))
        benchmark = Benchmark(store, worker=worker, clock=fixed_clock)

        with pytest.raises(InterruptAbort) as excinfo:
            await benchmark.run(RunContext(), _bench_config())

        assert excinfo.value.details["stage"] == "load pass"
        assert not store_path.exists()

    @pytest.mark.asyncio
    async def test_history_failure_records_nothing(self, store_path, fixed_clock):
        store_path.parent.mkdir(parents=True)
        store_path.write_text("[]garbage", encoding="utf-8")
        store = JsonFileStore(store_path, clock=fixed_clock)
        benchmark = Benchmark(store, worker=StatsWorker(), clock=fixed_clock)

        with pytest.raises(AnalyticsStoreError):
            await benchmark.run(RunContext(), _bench_config())

        assert store_path.read_text(encoding="utf-8") == "[]garbage"

    @pytest.mark.asyncio
    async def test_load_config_rejected(self, store_path):
        benchmark = Benchmark(JsonFileStore(store_path), worker=StatsWorker())
        config, _ = make_config(mode=Mode.LOAD)

        with pytest.raises(ValueError):
            await benchmark.run(RunContext(), config)

    @pytest.mark.asyncio
    async def test_worker_runs_fixed_profile(self, store_path, fixed_clock):
        worker = StatsWorker()
        benchmark = Benchmark(JsonFileStore(store_path, clock=fixed_clock), worker=worker, clock=fixed_clock)

        await benchmark.run(RunContext(), _bench_config(span_min_limit=1, span_max_limit=2, instances=8))

        (config,) = worker.configs
        assert config.instances == 1
        assert config.span_min_limit == config.span_max_limit == 10
        assert config.error_frame_min_limit == config.error_frame_max_limit == 10
        assert config.transaction_limit == UNLIMITED


class TestProfile:
    def test_keeps_connection_and_seed(self):
        config = _bench_config(service_name="svc", random_seed=42, run_timeout=3.0)
        profile = benchmark_profile(config)
        assert profile.service_name == "svc"
        assert profile.random_seed == 42
        assert profile.run_timeout == 3.0
        assert profile.regression_margin == config.regression_margin
