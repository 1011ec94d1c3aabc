"""Migration coordinator.

Feeds batches into a shared queue, runs a fixed number of workers against
it, and waits for every worker before reporting the elapsed time and the
run summary.
"""

import asyncio
import time
from collections.abc import Sequence
from enum import Enum

import httpx

from scim_migration.client.scim_client import SCIMClient
from scim_migration.client.sts_client import CachingTokenProvider, STSClient, TokenProvider
from scim_migration.config import MigrationConfig
from scim_migration.migration.models import Batch, BatchOutcome, BatchState, MigrationSummary
from scim_migration.migration.worker import STOP, BulkSender, MigrationWorker
from scim_migration.reporting.sink import ResultSink
from scim_migration.utils.logging import get_logger, log_migration_progress

logger = get_logger(__name__)


class TerminationPolicy(str, Enum):
    """How the coordinator reacts to a failed batch."""

    DRAIN = "drain"  # Attempt every batch regardless of failures
    FAIL_FAST = "fail_fast"  # Stop handing out batches after the first failure


class MigrationCoordinator:
    """Runs the worker pool over a list of batches."""

    def __init__(
        self,
        token_provider: TokenProvider,
        sender: BulkSender,
        sink: ResultSink,
        concurrency: int = 1,
        batch_pause: float = 1.0,
        policy: TerminationPolicy = TerminationPolicy.DRAIN,
    ):
        """Initialize coordinator.

        Args:
            token_provider: Source of bearer tokens shared by the workers
            sender: Client that performs the bulk call
            sink: Shared result sink
            concurrency: Number of workers
            batch_pause: Seconds each worker waits after a batch
            policy: Termination discipline
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")

        self.token_provider = token_provider
        self.sender = sender
        self.sink = sink
        self.concurrency = concurrency
        self.batch_pause = batch_pause
        self.policy = policy

        self._total = 0
        self._completed = 0
        self._stop_event = asyncio.Event()

    def _on_outcome(self, outcome: BatchOutcome) -> None:
        self._completed += 1
        log_migration_progress(
            logger,
            completed=self._completed,
            total=self._total,
            bulk_id=outcome.bulk_id,
            state=outcome.state.value,
        )

        if (
            self.policy is TerminationPolicy.FAIL_FAST
            and outcome.state is BatchState.FAILED
            and not self._stop_event.is_set()
        ):
            self._stop_event.set()
            self.sink.emit(f"stopping: batch {outcome.bulk_id} failed, remaining batches skipped")
            logger.warning("fail_fast_triggered", bulk_id=outcome.bulk_id)

    async def run(self, batches: Sequence[Batch]) -> MigrationSummary:
        """Process every batch and wait for all workers.

        Returns:
            Summary over all batch outcomes

        Raises:
            Exception: The first unexpected worker error, after all workers ended
        """
        self._total = len(batches)
        self._completed = 0
        self._stop_event.clear()

        queue: asyncio.Queue = asyncio.Queue()
        workers = [
            MigrationWorker(
                worker_id=i,
                token_provider=self.token_provider,
                sender=self.sender,
                sink=self.sink,
                batch_pause=self.batch_pause,
                stop_event=self._stop_event,
                on_outcome=self._on_outcome,
            )
            for i in range(self.concurrency)
        ]

        logger.info(
            "migration_started",
            batches=self._total,
            concurrency=self.concurrency,
            policy=self.policy.value,
        )
        self.sink.emit("start migrating users")
        since = time.monotonic()

        tasks = [
            asyncio.create_task(worker.run(queue), name=f"migration-worker-{worker.worker_id}")
            for worker in workers
        ]

        for batch in batches:
            queue.put_nowait(batch)
        # Closing the queue: one sentinel per worker
        for _ in workers:
            queue.put_nowait(STOP)

        results = await asyncio.gather(*tasks, return_exceptions=True)
        elapsed = time.monotonic() - since

        self.sink.emit(f"Elapsed time {elapsed:.2f}s")

        for result in results:
            if isinstance(result, BaseException):
                logger.error("worker_crashed", error=str(result), error_type=type(result).__name__)
                raise result

        summary = self.sink.summary(elapsed)
        logger.info(
            "migration_finished",
            batches=summary.total_batches,
            failed=len(summary.failed_batch_ids),
            skipped=len(summary.skipped_batch_ids),
            elapsed_seconds=round(elapsed, 2),
        )
        if summary.failed_batch_ids:
            self.sink.emit(f"failed batches: {', '.join(summary.failed_batch_ids)}")
        return summary


async def run_migration(
    config: MigrationConfig,
    batches: Sequence[Batch],
    sink: ResultSink,
    private_key,
    policy: TerminationPolicy = TerminationPolicy.DRAIN,
    sts_transport: httpx.AsyncBaseTransport | None = None,
    scim_transport: httpx.AsyncBaseTransport | None = None,
) -> MigrationSummary:
    """Build the STS and SCIM clients from config and run the coordinator.

    Args:
        config: Loaded migration configuration
        batches: Batches to send
        sink: Result sink
        private_key: STS signing key
        policy: Termination discipline
        sts_transport: Optional httpx transport for the token service (tests)
        scim_transport: Optional httpx transport for the SCIM service (tests)
    """
    async with (
        STSClient(
            config.sts,
            client_id=config.client_id,
            private_key=private_key,
            transport=sts_transport,
        ) as sts_client,
        SCIMClient(
            config.scim,
            client_id=config.client_id,
            performance=config.performance,
            log_payloads=config.logging.log_payloads,
            max_payload_size=config.logging.max_payload_size,
            transport=scim_transport,
        ) as scim_client,
    ):
        token_provider: TokenProvider = sts_client
        if config.sts.cache_tokens:
            token_provider = CachingTokenProvider(
                sts_client, refresh_margin=config.sts.refresh_margin
            )

        coordinator = MigrationCoordinator(
            token_provider=token_provider,
            sender=scim_client,
            sink=sink,
            concurrency=config.performance.concurrency,
            batch_pause=config.performance.batch_pause,
            policy=policy,
        )
        return await coordinator.run(batches)
