"""Benchmark facade: fixed run, regression check, history bookkeeping."""

from heyapm.benchmark.benchmark import BENCHMARK_NAME, Benchmark, benchmark_profile
from heyapm.benchmark.regression import Verdict, judge
from heyapm.benchmark.store import AnalyticsStore, ElasticsearchStore, JsonFileStore

__all__ = [
    "AnalyticsStore",
    "BENCHMARK_NAME",
    "Benchmark",
    "ElasticsearchStore",
    "JsonFileStore",
    "Verdict",
    "benchmark_profile",
    "judge",
]
