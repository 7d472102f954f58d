"""Upload completion aggregation."""

from typing import Optional

from ..core.models import AggregationResult, BatchProgress
from ..core.observability import LogContext
from ..core.protocols import LoggerProtocol, MetadataStoreProtocol


class CompletionAggregator:
    """
    Decides whether an upload batch reached a terminal state.

    The check is a recompute-and-compare, never an increment: any number of
    workers may run it concurrently, in any order, and it only ever moves a
    batch to ``completed``.
    """

    def __init__(self, store: MetadataStoreProtocol, logger: LoggerProtocol):
        self._store = store
        self._logger = logger

    def check(self, batch_id: str) -> Optional[AggregationResult]:
        log_context = LogContext(
            correlation_id=batch_id,
            operation="check_completion",
            component="completion_aggregator",
        )

        batch = self._store.get_batch(batch_id)
        if batch is None:
            self._logger.error("Upload not found", log_context)
            return None

        processed_count = self._store.count_processed(batch_id)
        completed = processed_count >= batch.expected_count
        self._logger.info(
            f"Upload {batch_id}: {processed_count}/{batch.expected_count} processed",
            log_context,
        )

        if completed:
            self._store.mark_batch_completed(batch_id)
            self._logger.info(f"Upload {batch_id} marked as completed", log_context)

        return AggregationResult(
            batch_id=batch_id,
            processed_count=processed_count,
            expected_count=batch.expected_count,
            completed=completed,
        )

    def summarize(self, batch_id: str) -> Optional[BatchProgress]:
        """Batch status plus per-item derived statuses, for status reporting."""
        batch = self._store.get_batch(batch_id)
        if batch is None:
            return None

        items = self._store.list_contents(batch_id)
        progress = BatchProgress(
            batch_id=batch_id,
            status=batch.status,
            expected_count=batch.expected_count,
            items=items,
        )
        for item in items:
            if item.status.state == "completed":
                progress.completed_count += 1
            elif item.status.state == "failed":
                progress.failed_count += 1
            else:
                progress.pending_count += 1
        return progress
