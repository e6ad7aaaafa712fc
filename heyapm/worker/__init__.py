"""Worker facade: synthetic APM load for one instance."""

from heyapm.worker.generator import EventGenerator
from heyapm.worker.reporter import Reporter
from heyapm.worker.worker import Worker, payload_rng

__all__ = ["EventGenerator", "Reporter", "Worker", "payload_rng"]
