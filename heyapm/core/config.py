"""Validation and construction of the run ``Configuration``.

``build_config`` is the only place raw parameters (CLI flags, environment
values, test overrides) become a ``Configuration``. It also performs the
single seeding step of the run's random generator.
"""

from __future__ import annotations

import re
import time
from random import Random
from typing import Any

from heyapm.core.models import UNLIMITED, Configuration, Mode
from heyapm.exceptions import ConfigurationError
from heyapm.logger import Logger, session_logger

DEFAULT_APM_SERVER_URL = "http://localhost:8200"
DEFAULT_ES_URL = "http://localhost:9200"
DEFAULT_SERVICE_NAME = "hey-service"
DEFAULT_RUN_TIMEOUT = 30.0
DEFAULT_FLUSH_TIMEOUT = 10.0
DEFAULT_INSTANCES = 1
DEFAULT_START_JITTER_BOUND = 1.0
DEFAULT_FREQUENCY = 1e-9
DEFAULT_SPAN_MIN = 1
DEFAULT_SPAN_MAX = 10
DEFAULT_FRAME_MIN = 0
DEFAULT_FRAME_MAX = 10
DEFAULT_REGRESSION_MARGIN = 1.1
DEFAULT_REGRESSION_LOOKBACK_DAYS = "7"

_LOOKBACK_RE = re.compile(r"[0-9]+")


def build_config(
    *,
    rng: Random,
    mode: Mode | str = Mode.LOAD,
    apm_server_url: str = DEFAULT_APM_SERVER_URL,
    apm_secret_token: str = "",
    apm_api_key: str = "",
    service_name: str = DEFAULT_SERVICE_NAME,
    es_url: str = DEFAULT_ES_URL,
    es_auth: str = "",
    run_timeout: float | str = DEFAULT_RUN_TIMEOUT,
    flush_timeout: float | str = DEFAULT_FLUSH_TIMEOUT,
    instances: int | str = DEFAULT_INSTANCES,
    start_jitter_bound: float | str = DEFAULT_START_JITTER_BOUND,
    transaction_frequency: float | str = DEFAULT_FREQUENCY,
    transaction_limit: int | str = UNLIMITED,
    span_min_limit: int | str = DEFAULT_SPAN_MIN,
    span_max_limit: int | str = DEFAULT_SPAN_MAX,
    error_frequency: float | str = DEFAULT_FREQUENCY,
    error_limit: int | str = UNLIMITED,
    error_frame_min_limit: int | str = DEFAULT_FRAME_MIN,
    error_frame_max_limit: int | str = DEFAULT_FRAME_MAX,
    regression_margin: float | str = DEFAULT_REGRESSION_MARGIN,
    regression_lookback_days: int | str = DEFAULT_REGRESSION_LOOKBACK_DAYS,
    random_seed: int | str | None = None,
    logger: Logger | None = None,
) -> Configuration:
    """Validate raw parameters and return an immutable ``Configuration``.

    Seeds ``rng`` exactly once, with ``random_seed`` or the current Unix time.
    Inverted span/frame limits are clamped up rather than rejected.

    Raises:
        ConfigurationError: on any value that cannot be used, most notably a
            non-numeric regression lookback in benchmark mode.
    """
    log = logger or session_logger

    try:
        run_mode = Mode(mode)
    except ValueError:
        raise ConfigurationError(
            "unknown mode",
            {"mode": mode, "allowed": [m.value for m in Mode]},
        ) from None

    seed = _as_int("random_seed", random_seed) if random_seed is not None else int(time.time())

    instance_count = _as_int("instances", instances, minimum=0)
    jitter = _as_float("start_jitter_bound", start_jitter_bound, minimum=0.0)
    run_seconds = _as_float("run_timeout", run_timeout)
    if run_seconds <= 0:
        raise ConfigurationError("run_timeout must be > 0", {"run_timeout": run_timeout})
    flush_seconds = _as_float("flush_timeout", flush_timeout, minimum=0.0)

    span_min = _as_int("span_min_limit", span_min_limit, minimum=0)
    span_max = _as_int("span_max_limit", span_max_limit, minimum=0)
    if span_max < span_min:
        log.info(
            "hey.config_span_limit_clamped",
            span_min_limit=span_min,
            span_max_limit=span_max,
        )
        span_max = span_min

    frame_min = _as_int("error_frame_min_limit", error_frame_min_limit, minimum=0)
    frame_max = _as_int("error_frame_max_limit", error_frame_max_limit, minimum=0)
    if frame_max < frame_min:
        log.info(
            "hey.config_frame_limit_clamped",
            error_frame_min_limit=frame_min,
            error_frame_max_limit=frame_max,
        )
        frame_max = frame_min

    margin: float | None = None
    lookback: int | None = None
    if run_mode == Mode.BENCHMARK:
        lookback = _parse_lookback_days(regression_lookback_days)
        margin = _as_float("regression_margin", regression_margin)
        if margin < 1.0:
            raise ConfigurationError(
                "regression_margin must be >= 1.0",
                {"regression_margin": regression_margin},
            )

    config = Configuration(
        mode=run_mode,
        apm_server_url=apm_server_url,
        apm_secret_token=apm_secret_token,
        apm_api_key=apm_api_key,
        service_name=service_name,
        es_url=es_url,
        es_auth=es_auth,
        run_timeout=run_seconds,
        flush_timeout=flush_seconds,
        instances=instance_count,
        start_jitter_bound=jitter,
        transaction_frequency=_as_float("transaction_frequency", transaction_frequency, minimum=0.0),
        transaction_limit=_as_int("transaction_limit", transaction_limit, minimum=0),
        span_min_limit=span_min,
        span_max_limit=span_max,
        error_frequency=_as_float("error_frequency", error_frequency, minimum=0.0),
        error_limit=_as_int("error_limit", error_limit, minimum=0),
        error_frame_min_limit=frame_min,
        error_frame_max_limit=frame_max,
        regression_margin=margin,
        regression_lookback_days=lookback,
        random_seed=seed,
    )

    rng.seed(seed)

    log.debug(
        "hey.config_built",
        mode=config.mode.value,
        instances=config.instances,
        random_seed=seed,
    )
    return config


def _parse_lookback_days(raw: Any) -> int:
    # Plain decimal digits only: no sign, whitespace or underscores.
    text = str(raw)
    if isinstance(raw, bool) or not _LOOKBACK_RE.fullmatch(text):
        raise ConfigurationError(
            "regression lookback must be a non-negative integer number of days",
            {"regression_lookback_days": raw},
        )
    return int(text)


def _as_int(name: str, raw: Any, *, minimum: int | None = None) -> int:
    if isinstance(raw, bool):
        raise ConfigurationError(f"{name} must be an integer", {name: raw})
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer", {name: raw}) from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}", {name: raw})
    return value


def _as_float(name: str, raw: Any, *, minimum: float | None = None) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number", {name: raw}) from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}", {name: raw})
    return value
