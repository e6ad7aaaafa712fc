"""Exception hierarchy for hey-apm.

Every error carries a machine-readable ``code``, a human ``message`` and an
optional ``details`` mapping that is rendered into ``str(error)`` and passed
through to structured logs.
"""

from __future__ import annotations

from typing import Any


class HeyApmError(Exception):
    """Base class for all hey-apm errors."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict[str, Any] = dict(details) if details else {}

    def __str__(self) -> str:
        if not self.details:
            return f"{self.code}: {self.message}"
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.code}: {self.message} ({rendered})"


class ConfigurationError(HeyApmError):
    """Invalid run parameters. Fatal before any instance starts."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("CONFIGURATION_ERROR", message, details)


class WorkerFailure(HeyApmError):
    """A load-generation instance failed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        code: str = "WORKER_FAILURE",
    ) -> None:
        super().__init__(code, message, details)


class FlushTimeoutError(WorkerFailure):
    """Buffered events could not be delivered within the flush timeout."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, code="FLUSH_TIMEOUT")


class RegressionDetected(HeyApmError):
    """A benchmark run performed worse than its historical baseline."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("REGRESSION_DETECTED", message, details)


class InterruptAbort(HeyApmError):
    """A benchmark run was interrupted; its result is inconclusive."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("INTERRUPT_ABORT", message, details)


class AnalyticsStoreError(HeyApmError):
    """Reading or writing historical benchmark results failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("ANALYTICS_STORE_ERROR", message, details)
