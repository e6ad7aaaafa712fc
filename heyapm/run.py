from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from random import Random

from heyapm.logger import session_logger as logger
from heyapm.logger import setup_logging

from heyapm.api.report import build_run_report
from heyapm.core import config as defaults
from heyapm.core.config import build_config
from heyapm.core.models import UNLIMITED, Mode
from heyapm.core.orchestrator import Orchestrator
from heyapm.core.timeparse import parse_duration_to_seconds
from heyapm.exceptions import ConfigurationError

_DURATION_OPTIONS = {
    "run_timeout": "--run-timeout",
    "flush_timeout": "--flush-timeout",
    "start_jitter": "--start-jitter",
    "transaction_frequency": "--transaction-frequency",
    "error_frequency": "--error-frequency",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="hey-apm load generator and benchmark harness")

    run = parser.add_argument_group("run options")
    run.add_argument(
        "--bench",
        action="store_true",
        help="Execute a benchmark with fixed parameters and check it for regressions",
    )
    run.add_argument("--run-timeout", type=str, default="30s", help="Stop generating load after this duration")
    run.add_argument("--flush-timeout", type=str, default="10s", help="Wait timeout for the final flush")
    run.add_argument("--seed", type=int, default=None, help="Random seed (default: current time)")
    run.add_argument(
        "--instances",
        type=int,
        default=defaults.DEFAULT_INSTANCES,
        help="Number of concurrent instances creating load (ignored with --bench)",
    )
    run.add_argument(
        "--start-jitter",
        type=str,
        default="1000ms",
        help="Upper bound of the random start delay per instance (ignored with --bench)",
    )
    run.add_argument("--output", type=str, default=None, help="Write a JSON run report to this path")
    run.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("HEY_APM_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    run.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")

    apm = parser.add_argument_group("apm server options")
    apm.add_argument(
        "--apm-url",
        type=str,
        default=os.environ.get("ELASTIC_APM_SERVER_URL", defaults.DEFAULT_APM_SERVER_URL),
        help="APM server URL",
    )
    apm.add_argument(
        "--apm-secret",
        type=str,
        default=os.environ.get("ELASTIC_APM_SECRET_TOKEN", ""),
        help="APM server secret token",
    )
    apm.add_argument(
        "--api-key",
        type=str,
        default=os.environ.get("ELASTIC_APM_API_KEY", ""),
        help="APM server API key (takes precedence over --apm-secret)",
    )
    apm.add_argument(
        "--service-name",
        type=str,
        default=os.environ.get("ELASTIC_APM_SERVICE_NAME", defaults.DEFAULT_SERVICE_NAME),
        help="Service name reported in generated events",
    )

    bench = parser.add_argument_group("benchmark options")
    bench.add_argument(
        "--es-url",
        type=str,
        default=defaults.DEFAULT_ES_URL,
        help="Elasticsearch URL holding benchmark history",
    )
    bench.add_argument("--es-auth", type=str, default="", help="Elasticsearch username:password")
    bench.add_argument(
        "--store-file",
        type=str,
        default=None,
        help="Keep benchmark history in this JSON file instead of Elasticsearch",
    )
    bench.add_argument(
        "--regression-margin",
        type=str,
        default=str(defaults.DEFAULT_REGRESSION_MARGIN),
        help="Acceptable performance decrease ratio before flagging a regression",
    )
    bench.add_argument(
        "--regression-days",
        type=str,
        default=defaults.DEFAULT_REGRESSION_LOOKBACK_DAYS,
        help="Number of days back to look for comparable benchmark results",
    )

    payload = parser.add_argument_group("payload options (ignored with --bench)")
    payload.add_argument("--transaction-limit", type=int, default=UNLIMITED, help="Max transactions to generate")
    payload.add_argument(
        "--transaction-frequency",
        type=str,
        default="1ns",
        help="Generate transactions up to once in this duration",
    )
    payload.add_argument("--span-min", type=int, default=defaults.DEFAULT_SPAN_MIN, help="Min spans per transaction")
    payload.add_argument("--span-max", type=int, default=defaults.DEFAULT_SPAN_MAX, help="Max spans per transaction")
    payload.add_argument("--error-limit", type=int, default=UNLIMITED, help="Max errors to generate")
    payload.add_argument(
        "--error-frequency",
        type=str,
        default="1ns",
        help="Generate errors up to once in this duration",
    )
    payload.add_argument(
        "--error-frame-min",
        type=int,
        default=defaults.DEFAULT_FRAME_MIN,
        help="Min stacktrace frames per error",
    )
    payload.add_argument(
        "--error-frame-max",
        type=int,
        default=defaults.DEFAULT_FRAME_MAX,
        help="Max stacktrace frames per error",
    )
    return parser


def _build_benchmark(store_file: str):
    from heyapm.benchmark import Benchmark, JsonFileStore

    return Benchmark(JsonFileStore(store_file, logger=logger), logger=logger)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, json_output=args.log_json)

    durations: dict[str, float] = {}
    for dest, option in _DURATION_OPTIONS.items():
        raw = getattr(args, dest)
        try:
            durations[dest] = parse_duration_to_seconds(raw)
        except ValueError as exc:
            logger.error(
                "hey.invalid_duration",
                option=option,
                provided=raw,
                error=str(exc),
            )
            return 2

    rng = Random()
    try:
        config = build_config(
            rng=rng,
            mode=Mode.BENCHMARK if args.bench else Mode.LOAD,
            apm_server_url=args.apm_url,
            apm_secret_token=args.apm_secret,
            apm_api_key=args.api_key,
            service_name=args.service_name,
            es_url=args.es_url,
            es_auth=args.es_auth,
            run_timeout=durations["run_timeout"],
            flush_timeout=durations["flush_timeout"],
            instances=args.instances,
            start_jitter_bound=durations["start_jitter"],
            transaction_frequency=durations["transaction_frequency"],
            transaction_limit=args.transaction_limit,
            span_min_limit=args.span_min,
            span_max_limit=args.span_max,
            error_frequency=durations["error_frequency"],
            error_limit=args.error_limit,
            error_frame_min_limit=args.error_frame_min,
            error_frame_max_limit=args.error_frame_max,
            regression_margin=args.regression_margin,
            regression_lookback_days=args.regression_days,
            random_seed=args.seed,
            logger=logger,
        )
    except ConfigurationError as exc:
        logger.error(
            "hey.invalid_config",
            error_code=exc.code,
            error=exc.message,
            details=exc.details,
            recovery="Fix the flag values and run again",
        )
        return 2

    benchmark = None
    if config.mode == Mode.BENCHMARK and args.store_file:
        benchmark = _build_benchmark(args.store_file.strip())

    orchestrator = Orchestrator(config, rng=rng, benchmark=benchmark, logger=logger)
    result = asyncio.run(orchestrator.run())

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = build_run_report(config, result)
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        logger.info(
            "hey.report_written",
            path=str(output_path),
        )

    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
