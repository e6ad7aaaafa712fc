from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Mode(str, Enum):
    """Run mode.

    load: run N concurrent instances until stopped or timed out
    bench: single fixed run compared against historical results
    """

    LOAD = "load"
    BENCHMARK = "bench"


@dataclass(frozen=True)
class Configuration:
    """Immutable parameter set for one run. Build it with ``build_config``."""

    mode: Mode

    # ingestion backend
    apm_server_url: str
    apm_secret_token: str
    apm_api_key: str
    service_name: str

    # analytics store for benchmark history
    es_url: str
    es_auth: str

    run_timeout: float
    flush_timeout: float
    instances: int
    start_jitter_bound: float

    transaction_frequency: float
    transaction_limit: int
    span_min_limit: int
    span_max_limit: int
    error_frequency: float
    error_limit: int
    error_frame_min_limit: int
    error_frame_max_limit: int

    # bench only, None otherwise
    regression_margin: float | None
    regression_lookback_days: int | None

    random_seed: int


@dataclass
class WorkerStats:
    instance_id: str
    started_at_monotonic: float = 0.0
    ended_at_monotonic: float = 0.0
    transactions: int = 0
    spans: int = 0
    errors: int = 0
    frames: int = 0
    events_sent: int = 0
    events_accepted: int = 0
    requests: int = 0
    request_errors: int = 0
    flushed: bool = False
    aborted: bool = False

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)

    @property
    def events_generated(self) -> int:
        return self.transactions + self.spans + self.errors

    @property
    def events_per_second(self) -> float:
        duration = self.duration_seconds
        return (self.events_accepted / duration) if duration > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "transactions": self.transactions,
            "spans": self.spans,
            "errors": self.errors,
            "frames": self.frames,
            "events_sent": self.events_sent,
            "events_accepted": self.events_accepted,
            "requests": self.requests,
            "request_errors": self.request_errors,
            "flushed": self.flushed,
            "aborted": self.aborted,
            "duration_seconds": self.duration_seconds,
            "events_per_second": self.events_per_second,
        }


@dataclass
class BenchmarkReport:
    """Outcome of one benchmark pass, as stored in the analytics store."""

    name: str
    metric: float
    timestamp: str
    seed: int
    service_name: str
    apm_server_url: str
    stats: dict[str, Any] = field(default_factory=dict)
    baseline: float | None = None
    regression: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "metric": self.metric,
            "@timestamp": self.timestamp,
            "seed": self.seed,
            "service_name": self.service_name,
            "apm_server_url": self.apm_server_url,
            "stats": dict(self.stats),
            "baseline": self.baseline,
            "regression": self.regression,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "BenchmarkReport":
        return BenchmarkReport(
            name=str(data["name"]),
            metric=float(data["metric"]),
            timestamp=str(data.get("@timestamp", "")),
            seed=int(data.get("seed", 0)),
            service_name=str(data.get("service_name", "")),
            apm_server_url=str(data.get("apm_server_url", "")),
            stats=dict(data.get("stats") or {}),
            baseline=data.get("baseline"),
            regression=bool(data.get("regression", False)),
        )


@dataclass
class RunResult:
    mode: Mode
    started_at_monotonic: float
    ended_at_monotonic: float
    error: BaseException | None = None
    stats: list[WorkerStats] = field(default_factory=list)
    benchmark: BenchmarkReport | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)

    @property
    def events_accepted(self) -> int:
        return sum(s.events_accepted for s in self.stats)

    @property
    def throughput_eps(self) -> float:
        duration = self.duration_seconds
        return (self.events_accepted / duration) if duration > 0 else 0.0


UNLIMITED = sys.maxsize
