"""Project exception classes.

Re-exports the hierarchy from ``heyapm.exceptions.base``.
"""

from heyapm.exceptions.base import (
    AnalyticsStoreError,
    ConfigurationError,
    FlushTimeoutError,
    HeyApmError,
    InterruptAbort,
    RegressionDetected,
    WorkerFailure,
)

__all__ = [
    "HeyApmError",
    "ConfigurationError",
    "WorkerFailure",
    "FlushTimeoutError",
    "RegressionDetected",
    "InterruptAbort",
    "AnalyticsStoreError",
]
