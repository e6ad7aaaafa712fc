"""Pytest configuration and fixtures

Provides shared fixtures and fakes for all tests: fast configurations, a
scripted worker facade, a scripted benchmark facade and a fixed clock.
"""

import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from random import Random

import pytest
import structlog

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from heyapm.core.config import build_config
from heyapm.core.control import wait_any
from heyapm.core.models import BenchmarkReport, Mode, WorkerStats


# ============================================================================
# CONFIGURATION
# ============================================================================

TEST_SEED = 1000

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def make_config(**overrides):
    """Build a fast configuration for tests.

    Returns (config, rng); the rng has been seeded by ``build_config``.
    """
    params = {
        "mode": Mode.LOAD,
        "apm_server_url": "http://apm.test:8200",
        "run_timeout": 5.0,
        "flush_timeout": 1.0,
        "instances": 1,
        "start_jitter_bound": 0.0,
        "random_seed": TEST_SEED,
    }
    params.update(overrides)
    rng = params.pop("rng", None) or Random()
    return build_config(rng=rng, **params), rng


# ============================================================================
# FAKE FACADES
# ============================================================================


class FakeWorker:
    """Scripted worker facade.

    - ``failures`` maps instance ids to (delay_seconds, exception) raised after the delay.
    - ``hold`` keeps successful instances running until the context is
      cancelled or the stop signal fires.
    """

    def __init__(self, *, failures=None, hold=False):
        self.failures = failures or {}
        self.hold = hold
        self.calls = []
        self.finished = []
        self.saw_cancel = []

    async def run(self, context, config, instance_id, stop_signal):
        self.calls.append((instance_id, time.monotonic()))
        try:
            if instance_id in self.failures:
                delay, error = self.failures[instance_id]
                await wait_any(delay, context)
                raise error
            if self.hold:
                await wait_any(None, context, stop_signal)
                if context.cancelled:
                    self.saw_cancel.append(instance_id)
            return WorkerStats(instance_id=instance_id, events_accepted=10)
        finally:
            self.finished.append(instance_id)


class FakeBenchmark:
    """Scripted benchmark facade."""

    def __init__(self, *, error=None, wait_for_cancel=False):
        self.error = error
        self.wait_for_cancel = wait_for_cancel
        self.calls = 0

    async def run(self, context, config):
        self.calls += 1
        if self.wait_for_cancel:
            await context.wait()
        if self.error is not None:
            raise self.error
        return BenchmarkReport(
            name="fake",
            metric=100.0,
            timestamp=FIXED_NOW.isoformat(),
            seed=config.random_seed,
            service_name=config.service_name,
            apm_server_url=config.apm_server_url,
        )


class StatsWorker:
    """Worker facade returning fixed stats, for benchmark tests."""

    def __init__(self, *, events_accepted=2000, duration=2.0, on_run=None):
        self.events_accepted = events_accepted
        self.duration = duration
        self.on_run = on_run
        self.configs = []

    async def run(self, context, config, instance_id, stop_signal):
        self.configs.append(config)
        if self.on_run is not None:
            self.on_run(context)
        return WorkerStats(
            instance_id=instance_id,
            started_at_monotonic=100.0,
            ended_at_monotonic=100.0 + self.duration,
            events_accepted=self.events_accepted,
            aborted=context.cancelled,
        )


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging configuration a test (e.g. the CLI) applied."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "history" / "benchmarks.json"
