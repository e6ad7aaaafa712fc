from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from heyapm import __version__
from heyapm.core.models import Configuration, WorkerStats
from heyapm.exceptions import FlushTimeoutError
from heyapm.logger import Logger, session_logger

INTAKE_PATH = "/intake/v2/events"
DEFAULT_BATCH_SIZE = 250
_REQUEST_TIMEOUT_SECONDS = 10.0


class Reporter:
    """Buffers generated events and ships them to the APM server intake API.

    Each request body is newline-delimited JSON: the metadata line followed
    by up to ``batch_size`` events. Failed requests are counted in the
    worker's stats and never retried.
    """

    def __init__(
        self,
        config: Configuration,
        metadata: dict[str, Any],
        stats: WorkerStats,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Logger | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")

        self._config = config
        self._metadata_line = json.dumps(metadata, separators=(",", ":"))
        self._stats = stats
        self._batch_size = batch_size
        self._logger = logger or session_logger
        self._buffer: list[dict[str, Any]] = []

        self._http = httpx.AsyncClient(
            base_url=config.apm_server_url.rstrip("/"),
            timeout=httpx.Timeout(_REQUEST_TIMEOUT_SECONDS),
            headers=_intake_headers(config),
            transport=transport,
        )

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def add(self, event: dict[str, Any]) -> None:
        self._buffer.append(event)

    def extend(self, events: list[dict[str, Any]]) -> None:
        self._buffer.extend(events)

    def should_send(self) -> bool:
        return len(self._buffer) >= self._batch_size

    async def send(self) -> None:
        """Send one batch from the head of the buffer."""
        if not self._buffer:
            return

        batch = self._buffer[: self._batch_size]
        del self._buffer[: self._batch_size]

        lines = [self._metadata_line]
        lines.extend(json.dumps(event, separators=(",", ":")) for event in batch)
        body = ("\n".join(lines) + "\n").encode("utf-8")

        self._stats.requests += 1
        self._stats.events_sent += len(batch)
        try:
            response = await self._http.post(INTAKE_PATH, content=body)
        except httpx.HTTPError as exc:
            self._stats.request_errors += 1
            self._logger.warning(
                "hey.intake_request_error",
                instance_id=self._stats.instance_id,
                events=len(batch),
                error_type=_classify_exception(exc),
                error=str(exc),
            )
            return

        error_type = _classify_http_error(response.status_code)
        if error_type is None:
            self._stats.events_accepted += len(batch)
            return

        self._stats.request_errors += 1
        self._logger.warning(
            "hey.intake_request_rejected",
            instance_id=self._stats.instance_id,
            events=len(batch),
            status_code=response.status_code,
            error_type=error_type,
        )

    async def flush(self, timeout: float) -> None:
        """Send everything still buffered, within ``timeout`` seconds.

        Raises:
            FlushTimeoutError: if the buffer was not drained in time.
        """
        if not self._buffer:
            return
        try:
            await asyncio.wait_for(self._drain(), timeout=timeout)
        except asyncio.TimeoutError:
            raise FlushTimeoutError(
                "flush did not complete in time",
                {
                    "instance_id": self._stats.instance_id,
                    "flush_timeout": timeout,
                    "events_pending": len(self._buffer),
                },
            ) from None

    def discard(self) -> int:
        dropped = len(self._buffer)
        self._buffer.clear()
        return dropped

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _drain(self) -> None:
        while self._buffer:
            await self.send()


def _intake_headers(config: Configuration) -> dict[str, str]:
    headers = {
        "Content-Type": "application/x-ndjson",
        "User-Agent": f"hey-apm/{__version__}",
    }
    if config.apm_api_key:
        headers["Authorization"] = f"ApiKey {config.apm_api_key}"
    elif config.apm_secret_token:
        headers["Authorization"] = f"Bearer {config.apm_secret_token}"
    return headers


def _classify_http_error(status_code: int) -> str | None:
    """Map an intake response status to a canonical error_type, or None if accepted."""
    if 200 <= status_code < 300:
        return None
    if status_code == 401:
        return "auth_unauthorized"
    if status_code == 403:
        return "auth_forbidden"
    if status_code == 413:
        return "payload_too_large"
    if status_code == 429:
        return "rate_limited"
    if status_code == 503:
        return "queue_full"
    if 400 <= status_code < 500:
        return "client_error"
    if 500 <= status_code < 600:
        return "server_error"
    return f"http_{status_code}"


def _classify_exception(exc: Exception) -> str:
    """Map a network-level exception to a canonical error_type."""
    if isinstance(exc, httpx.TimeoutException):
        return "network_timeout"
    if isinstance(exc, httpx.ConnectError):
        return "network_connect"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return "network_protocol"
    if isinstance(exc, httpx.HTTPError):
        return "network_error"
    return type(exc).__name__
