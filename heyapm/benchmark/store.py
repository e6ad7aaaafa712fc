"""Analytics stores for historical benchmark results.

``ElasticsearchStore`` is the production store; ``JsonFileStore`` keeps the
same records in a local JSON file for offline runs and tests::

    benchmarks.json
    {
      "version": 1,
      "reports": [
        {"name": "...", "metric": 1234.5, "@timestamp": "2026-10-19T08:00:00+00:00", ...},
        ...
      ]
    }

Both restrict history to whole days: a lookback of N days covers the current
UTC day plus the N days before it.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

import httpx

from heyapm.core.models import BenchmarkReport
from heyapm.exceptions import AnalyticsStoreError
from heyapm.logger import Logger, session_logger

DEFAULT_INDEX = "hey-bench"
_REQUEST_TIMEOUT_SECONDS = 30.0
_MAX_HISTORY = 1000


class AnalyticsStore(Protocol):
    async def fetch_metrics(self, name: str, days: int) -> list[float]: ...

    async def record(self, report: BenchmarkReport) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def lookback_cutoff(now: datetime, days: int) -> datetime:
    """Start of the UTC day ``days`` days before ``now``."""
    start_of_day = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return start_of_day - timedelta(days=days)


class JsonFileStore:
    """Benchmark history kept in a local JSON file."""

    def __init__(
        self,
        path: str | Path,
        *,
        clock: Callable[[], datetime] = _utc_now,
        logger: Logger | None = None,
    ) -> None:
        self._path = Path(path)
        self._clock = clock
        self._logger = logger or session_logger

    @property
    def path(self) -> Path:
        return self._path

    async def fetch_metrics(self, name: str, days: int) -> list[float]:
        cutoff = lookback_cutoff(self._clock(), days)
        metrics: list[float] = []
        for report in self.load_reports():
            if report.name != name:
                continue
            try:
                recorded_at = datetime.fromisoformat(report.timestamp)
            except ValueError:
                self._logger.warning(
                    "hey.store_bad_timestamp",
                    path=str(self._path),
                    timestamp=report.timestamp,
                )
                continue
            if recorded_at.tzinfo is None:
                recorded_at = recorded_at.replace(tzinfo=timezone.utc)
            if recorded_at >= cutoff:
                metrics.append(report.metric)
        return metrics

    async def record(self, report: BenchmarkReport) -> None:
        reports = self.load_reports()
        reports.append(report)
        payload = {"version": 1, "reports": [r.to_dict() for r in reports]}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise AnalyticsStoreError(
                "could not write benchmark history",
                {"path": str(self._path), "error": str(exc)},
            ) from exc

    def load_reports(self) -> list[BenchmarkReport]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return [BenchmarkReport.from_dict(raw) for raw in data.get("reports", [])]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise AnalyticsStoreError(
                "could not read benchmark history",
                {"path": str(self._path), "error": str(exc)},
            ) from exc


class ElasticsearchStore:
    """Benchmark history kept in an Elasticsearch index."""

    def __init__(
        self,
        url: str,
        *,
        auth: str = "",
        index: str = DEFAULT_INDEX,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._index = index
        self._logger = logger or session_logger
        self._http = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            auth=_basic_auth(auth),
            timeout=httpx.Timeout(_REQUEST_TIMEOUT_SECONDS),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch_metrics(self, name: str, days: int) -> list[float]:
        query: dict[str, Any] = {
            "size": _MAX_HISTORY,
            "_source": ["metric"],
            "query": {
                "bool": {
                    "filter": [
                        {"match_phrase": {"name": name}},
                        {"range": {"@timestamp": {"gte": f"now-{days}d/d"}}},
                    ]
                }
            },
        }
        response = await self._request("POST", f"/{self._index}/_search", json=query)

        if response.status_code == 404:
            # No index yet: first ever run.
            self._logger.info("hey.store_index_missing", index=self._index)
            return []
        self._raise_for_status(response, "search")

        hits = response.json().get("hits", {}).get("hits", [])
        metrics: list[float] = []
        for hit in hits:
            value = hit.get("_source", {}).get("metric")
            if isinstance(value, (int, float)):
                metrics.append(float(value))
        return metrics

    async def record(self, report: BenchmarkReport) -> None:
        response = await self._request(
            "POST",
            f"/{self._index}/_doc",
            params={"refresh": "true"},
            json=report.to_dict(),
        )
        self._raise_for_status(response, "index")

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise AnalyticsStoreError(
                "elasticsearch request failed",
                {"path": path, "error_type": type(exc).__name__, "error": str(exc)},
            ) from exc

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        raise AnalyticsStoreError(
            f"elasticsearch {operation} failed",
            {
                "index": self._index,
                "status_code": response.status_code,
                "body": response.text[:500],
            },
        )


def _basic_auth(raw: str) -> tuple[str, str] | None:
    if not raw:
        return None
    user, _, password = raw.partition(":")
    return user, password
