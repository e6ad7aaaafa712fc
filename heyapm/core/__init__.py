"""Configuration, control primitives and orchestration."""

from heyapm.core.config import build_config
from heyapm.core.control import RunContext, StopSignal
from heyapm.core.models import BenchmarkReport, Configuration, Mode, RunResult, WorkerStats
from heyapm.core.orchestrator import Orchestrator

__all__ = [
    "BenchmarkReport",
    "Configuration",
    "Mode",
    "Orchestrator",
    "RunContext",
    "RunResult",
    "StopSignal",
    "WorkerStats",
    "build_config",
]
