"""Synthetic APM event generation.

Events are plain dicts in the APM intake v2 shape (one top-level key per
event: ``metadata``, ``transaction``, ``span`` or ``error``). All randomness
comes from the ``Random`` passed in, so a seeded generator always yields the
same sequence of names, ids and counts.
"""

from __future__ import annotations

import time
from random import Random
from typing import Any, Callable

from heyapm import __version__
from heyapm.core.models import Configuration

_TRANSACTION_NAMES = (
    "GET /api/products",
    "GET /api/products/:id",
    "POST /api/orders",
    "GET /api/customers/:id",
    "PUT /api/cart",
    "DELETE /api/sessions/:id",
)

_SPAN_KINDS = (
    ("SELECT FROM products", "db.postgresql.query"),
    ("SELECT FROM customers", "db.postgresql.query"),
    ("INSERT INTO orders", "db.postgresql.query"),
    ("GET /inventory", "external.http"),
    ("GET cache", "cache.redis"),
    ("render template", "template.jinja2"),
)

_EXCEPTIONS = (
    ("ValueError", "invalid literal for int() with base 10"),
    ("KeyError", "'customer_id'"),
    ("TimeoutError", "upstream timed out"),
    ("ConnectionError", "connection reset by peer"),
)

_MODULES = ("shop/views.py", "shop/models.py", "shop/services.py", "lib/http.py", "lib/db.py")
_FUNCTIONS = ("handle", "dispatch", "get_object", "execute", "render", "save", "fetch")


class EventGenerator:
    """Builds transactions (with spans) and errors (with stack frames)."""

    def __init__(
        self,
        config: Configuration,
        rng: Random,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._rng = rng
        self._clock = clock

    def metadata(self) -> dict[str, Any]:
        return {
            "metadata": {
                "service": {
                    "name": self._config.service_name,
                    "agent": {"name": "hey-apm", "version": __version__},
                    "language": {"name": "python"},
                }
            }
        }

    def span_count(self) -> int:
        return self._rng.randint(self._config.span_min_limit, self._config.span_max_limit)

    def frame_count(self) -> int:
        return self._rng.randint(self._config.error_frame_min_limit, self._config.error_frame_max_limit)

    def transaction(self) -> list[dict[str, Any]]:
        """Return one transaction event followed by its span events."""
        rng = self._rng
        trace_id = self._hex_id(128)
        transaction_id = self._hex_id(64)
        timestamp_us = int(self._clock() * 1_000_000)
        spans_total = self.span_count()

        spans: list[dict[str, Any]] = []
        offset_ms = 0.0
        for _ in range(spans_total):
            name, span_type = rng.choice(_SPAN_KINDS)
            duration_ms = round(rng.uniform(0.1, 25.0), 3)
            spans.append(
                {
                    "span": {
                        "id": self._hex_id(64),
                        "transaction_id": transaction_id,
                        "trace_id": trace_id,
                        "parent_id": transaction_id,
                        "name": name,
                        "type": span_type,
                        "start": round(offset_ms, 3),
                        "duration": duration_ms,
                        "timestamp": timestamp_us + int(offset_ms * 1000),
                    }
                }
            )
            offset_ms += duration_ms

        transaction = {
            "transaction": {
                "id": transaction_id,
                "trace_id": trace_id,
                "name": rng.choice(_TRANSACTION_NAMES),
                "type": "request",
                "duration": round(offset_ms + rng.uniform(0.5, 5.0), 3),
                "timestamp": timestamp_us,
                "result": "HTTP 2xx",
                "outcome": "success",
                "sampled": True,
                "span_count": {"started": spans_total, "dropped": 0},
            }
        }
        return [transaction, *spans]

    def error(self) -> dict[str, Any]:
        rng = self._rng
        exc_type, message = rng.choice(_EXCEPTIONS)
        frames = [
            {
                "filename": rng.choice(_MODULES),
                "function": rng.choice(_FUNCTIONS),
                "lineno": rng.randint(1, 800),
            }
            for _ in range(self.frame_count())
        ]
        culprit = f"{frames[0]['filename']} in {frames[0]['function']}" if frames else exc_type
        return {
            "error": {
                "id": self._hex_id(128),
                "timestamp": int(self._clock() * 1_000_000),
                "culprit": culprit,
                "exception": {
                    "type": exc_type,
                    "message": message,
                    "stacktrace": frames,
                },
            }
        }

    def _hex_id(self, bits: int) -> str:
        return f"{self._rng.getrandbits(bits):0{bits // 4}x}"
