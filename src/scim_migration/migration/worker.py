"""Migration worker.

A worker pulls batches from the shared queue until it sees the stop
sentinel. For every batch it fetches a token, sends the bulk request, and
reports one status line per returned operation. A failed batch is reported
and never retried.
"""

import asyncio
from collections.abc import Callable
from typing import Protocol

from scim_migration.client.exceptions import ScimMigrationError, TokenAcquisitionError
from scim_migration.client.sts_client import TokenProvider
from scim_migration.migration.models import Batch, BatchOutcome, BatchState, BulkResponse
from scim_migration.reporting.sink import ResultSink
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)

# Placed on the queue once per worker after the last batch
STOP = None


class BulkSender(Protocol):
    async def migrate_users(self, access_token: str, batch: Batch) -> BulkResponse: ...


class MigrationWorker:
    """Processes batches one at a time, start to finish."""

    def __init__(
        self,
        worker_id: int,
        token_provider: TokenProvider,
        sender: BulkSender,
        sink: ResultSink,
        batch_pause: float = 1.0,
        stop_event: asyncio.Event | None = None,
        on_outcome: Callable[[BatchOutcome], None] | None = None,
    ):
        """Initialize worker.

        Args:
            worker_id: Index used in log context
            token_provider: Source of bearer tokens
            sender: Client that performs the bulk call
            sink: Shared result sink
            batch_pause: Seconds to wait after each processed batch
            stop_event: When set, remaining batches are skipped
            on_outcome: Called with every outcome after it is recorded
        """
        self.worker_id = worker_id
        self.token_provider = token_provider
        self.sender = sender
        self.sink = sink
        self.batch_pause = batch_pause
        self.stop_event = stop_event
        self.on_outcome = on_outcome
        self.processed = 0

    def _stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def run(self, queue: asyncio.Queue) -> int:
        """Consume batches until the stop sentinel.

        Returns:
            Number of batches this worker attempted
        """
        logger.debug("worker_started", worker_id=self.worker_id)

        while True:
            batch = await queue.get()
            try:
                if batch is STOP:
                    break
                if self._stopped():
                    self._finish(self.skip(batch))
                    continue
                self._finish(await self.process(batch))
            finally:
                queue.task_done()

            # Only attempted batches are followed by the pause
            await asyncio.sleep(self.batch_pause)

        logger.debug("worker_finished", worker_id=self.worker_id, processed=self.processed)
        return self.processed

    def _finish(self, outcome: BatchOutcome) -> None:
        self.sink.record(outcome)
        if self.on_outcome is not None:
            self.on_outcome(outcome)

    def skip(self, batch: Batch) -> BatchOutcome:
        self.sink.emit(f"SKIPPED: batch: {batch.bulk_id}, not attempted")
        return BatchOutcome(
            bulk_id=batch.bulk_id,
            record_count=len(batch),
            state=BatchState.SKIPPED,
        )

    async def process(self, batch: Batch) -> BatchOutcome:
        """Send one batch and report its per-record results."""
        self.processed += 1
        errors: list[str] = []

        self.sink.emit(f"begin batch {batch.bulk_id}")
        logger.info(
            "batch_started",
            worker_id=self.worker_id,
            bulk_id=batch.bulk_id,
            records=len(batch),
        )

        try:
            access_token = await self.token_provider.get_access_token()
        except TokenAcquisitionError as e:
            # The send still goes out and fails on the empty token
            access_token = ""
            errors.append(str(e))
            self.sink.emit(f"ERROR: batch: {batch.bulk_id}, {e}")
            logger.warning("token_acquisition_failed", bulk_id=batch.bulk_id, error=str(e))

        try:
            response = await self.sender.migrate_users(access_token, batch)
        except ScimMigrationError as e:
            outcome = self._fail(batch, errors, e)
        except Exception as e:
            # Anything unexpected still fails only this batch
            logger.exception("batch_crashed", worker_id=self.worker_id, bulk_id=batch.bulk_id)
            outcome = self._fail(batch, errors, e)
        else:
            for op in response.operations:
                self.sink.emit(f"batch {op.bulk_id}, path {op.path} status {op.status}")
            if len(response.operations) != len(batch):
                logger.warning(
                    "batch_operation_count_mismatch",
                    bulk_id=batch.bulk_id,
                    sent=len(batch),
                    returned=len(response.operations),
                )
            outcome = BatchOutcome(
                bulk_id=batch.bulk_id,
                record_count=len(batch),
                state=BatchState.SUCCEEDED,
                statuses=list(response.operations),
                errors=errors,
            )
            logger.info(
                "batch_completed",
                worker_id=self.worker_id,
                bulk_id=batch.bulk_id,
                returned=len(response.operations),
            )

        self.sink.emit(f"done batch {batch.bulk_id}")
        return outcome

    def _fail(self, batch: Batch, errors: list[str], error: Exception) -> BatchOutcome:
        errors.append(str(error) or type(error).__name__)
        self.sink.emit(f"ERROR: batch: {batch.bulk_id}, {errors[-1]}")
        logger.error(
            "batch_failed",
            worker_id=self.worker_id,
            bulk_id=batch.bulk_id,
            error_type=type(error).__name__,
            error=errors[-1],
        )
        return BatchOutcome(
            bulk_id=batch.bulk_id,
            record_count=len(batch),
            state=BatchState.FAILED,
            errors=errors,
        )
