from __future__ import annotations

import asyncio
import time
from random import Random

import httpx

from heyapm.core.control import RunContext, StopSignal, unless_cancelled, wait_any
from heyapm.core.models import Configuration, WorkerStats
from heyapm.logger import Logger, session_logger
from heyapm.worker.generator import EventGenerator
from heyapm.worker.reporter import DEFAULT_BATCH_SIZE, Reporter


class Worker:
    """Generates synthetic APM load for one instance.

    ``run`` produces transactions and errors at the configured frequencies
    until the context is cancelled, the stop signal fires, ``run_timeout``
    elapses or both limits are exhausted. It then flushes buffered events
    within ``flush_timeout`` (raising ``FlushTimeoutError`` otherwise), except
    after a hard cancel, where the buffer is discarded. A hard cancel also
    abandons any intake request or flush already in flight.

    One ``Worker`` can serve any number of concurrent instances; per-run
    state lives in ``run``.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        logger: Logger | None = None,
    ) -> None:
        self._transport = transport
        self._batch_size = batch_size
        self._logger = logger or session_logger

    async def run(
        self,
        context: RunContext,
        config: Configuration,
        instance_id: str,
        stop_signal: StopSignal,
    ) -> WorkerStats:
        stats = WorkerStats(instance_id=instance_id, started_at_monotonic=time.monotonic())
        generator = EventGenerator(config, payload_rng(config.random_seed, instance_id))
        reporter = Reporter(
            config,
            generator.metadata(),
            stats,
            batch_size=self._batch_size,
            transport=self._transport,
            logger=self._logger,
        )

        self._logger.debug("hey.worker_start", instance_id=instance_id)

        try:
            reason = await self._generate(context, config, stop_signal, generator, reporter, stats)

            if not context.cancelled:
                stats.flushed = await unless_cancelled(context, reporter.flush(config.flush_timeout))

            if not stats.flushed:
                stats.aborted = True
                dropped = reporter.discard()
                self._logger.warning(
                    "hey.worker_aborted",
                    instance_id=instance_id,
                    events_dropped=dropped,
                    cause=context.reason,
                )
                return stats
        finally:
            stats.ended_at_monotonic = time.monotonic()
            await reporter.aclose()

        self._logger.info("hey.worker_done", reason=reason, **stats.to_dict())
        return stats

    async def _generate(
        self,
        context: RunContext,
        config: Configuration,
        stop_signal: StopSignal,
        generator: EventGenerator,
        reporter: Reporter,
        stats: WorkerStats,
    ) -> str:
        """Generation loop. Returns why it ended."""
        started = time.monotonic()
        deadline = started + config.run_timeout
        next_transaction = started
        next_error = started

        while True:
            if context.cancelled:
                return "cancelled"
            if stop_signal.fired:
                return "stopped"

            now = time.monotonic()
            if now >= deadline:
                return "timeout"

            if stats.transactions < config.transaction_limit and now >= next_transaction:
                events = generator.transaction()
                reporter.extend(events)
                stats.transactions += 1
                stats.spans += len(events) - 1
                next_transaction = max(next_transaction + config.transaction_frequency, now)

            if stats.errors < config.error_limit and now >= next_error:
                event = generator.error()
                reporter.add(event)
                stats.errors += 1
                stats.frames += len(event["error"]["exception"]["stacktrace"])
                next_error = max(next_error + config.error_frequency, now)

            if reporter.should_send():
                # An in-flight request must not delay a hard cancel.
                if not await unless_cancelled(context, reporter.send()):
                    return "cancelled"

            due: list[float] = []
            if stats.transactions < config.transaction_limit:
                due.append(next_transaction)
            if stats.errors < config.error_limit:
                due.append(next_error)
            if not due:
                return "exhausted"

            delay = min(min(due), deadline) - time.monotonic()
            if delay > 0:
                await wait_any(delay, context, stop_signal)
            else:
                await asyncio.sleep(0)


def payload_rng(seed: int, instance_id: str) -> Random:
    """Per-instance generator derived from the run seed.

    Instances never share a generator, so payload shapes are reproducible
    regardless of how their draws interleave.
    """
    return Random(f"{seed}:{instance_id}")
