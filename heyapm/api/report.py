from __future__ import annotations

from typing import Any

from heyapm.core.models import Configuration, RunResult


def build_run_report(config: Configuration, result: RunResult) -> dict[str, Any]:
    config_payload = {
        "mode": config.mode.value,
        "apm_server_url": config.apm_server_url,
        "service_name": config.service_name,
        "instances": config.instances,
        "start_jitter_bound": config.start_jitter_bound,
        "run_timeout": config.run_timeout,
        "flush_timeout": config.flush_timeout,
        "transaction_frequency": config.transaction_frequency,
        "transaction_limit": config.transaction_limit,
        "span_min_limit": config.span_min_limit,
        "span_max_limit": config.span_max_limit,
        "error_frequency": config.error_frequency,
        "error_limit": config.error_limit,
        "error_frame_min_limit": config.error_frame_min_limit,
        "error_frame_max_limit": config.error_frame_max_limit,
        "regression_margin": config.regression_margin,
        "regression_lookback_days": config.regression_lookback_days,
        "random_seed": config.random_seed,
    }
    error_payload = None
    if result.error is not None:
        error_payload = {
            "type": type(result.error).__name__,
            "code": getattr(result.error, "code", None),
            "message": str(result.error),
        }
    return {
        "config": config_payload,
        "result": {
            "ok": result.ok,
            "error": error_payload,
            "duration_seconds": result.duration_seconds,
            "events_accepted": result.events_accepted,
            "throughput_eps": result.throughput_eps,
        },
        "instances": [stats.to_dict() for stats in result.stats],
        "benchmark": result.benchmark.to_dict() if result.benchmark is not None else None,
    }
