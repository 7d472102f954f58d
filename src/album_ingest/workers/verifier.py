"""Content verifier: sniffs raw uploads and promotes them to ``verified/``."""

import time
from typing import Any, Dict, List

from ..core.error_handling import BatchOperationContextManager
from ..core.events import object_created_records
from ..core.exceptions import (
    ContentRejectedError,
    MalformedEventError,
    RecordNotReadyError,
)
from ..core.image_utils import require_allowed_type
from ..core.models import HandlerReport, ItemOutcome, ObjectCreatedRecord
from ..core.object_keys import parse_object_key
from ..core.observability import LogContext
from ..core.protocols import (
    CompletionCheckProtocol,
    LoggerProtocol,
    MetadataStoreProtocol,
    S3ClientProtocol,
)
from .common import copy_object, download_object


class ContentVerifier:
    """
    Handles raw-object-created notifications.

    For each ``raws/{batch}/{content}.{ext}`` record: fetch the bytes, sniff
    the real type, and either copy the object to
    ``verified/raws/{batch}/{content}.{sniffed_ext}`` with the sniffed content
    type, or record the item as failed. Rejections never abort the other
    records of the notification; store errors do.
    """

    name = "verifier"

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        store: MetadataStoreProtocol,
        aggregator: CompletionCheckProtocol,
        logger: LoggerProtocol,
    ):
        self._s3_client = s3_client
        self._store = store
        self._aggregator = aggregator
        self._logger = logger

    def handle_event(self, event: Dict[str, Any]) -> HandlerReport:
        return self.handle_records(object_created_records(event))

    def handle_records(self, records: List[ObjectCreatedRecord]) -> HandlerReport:
        """
        Verify every record in order.

        Raises:
            StorageError: The object store failed; nothing after the failing
                record was attempted.
            RecordNotReadyError: Some objects have no content record yet. All
                other records were handled first.
        """
        report = HandlerReport(worker=self.name)
        not_ready: List[str] = []

        with BatchOperationContextManager(operation_name="Content verification") as batch:
            for record in records:
                try:
                    outcome = self.verify_record(record)
                except RecordNotReadyError as e:
                    not_ready.extend(e.keys)
                    outcome = ItemOutcome(key=record.key, error=str(e))
                report.outcomes.append(outcome)
                if outcome.outcome == "failed":
                    batch.add_error(outcome.error, item_identifier=record.key)

        if not_ready:
            raise RecordNotReadyError(not_ready)
        return report

    def verify_record(self, record: ObjectCreatedRecord) -> ItemOutcome:
        start_time = time.time()
        outcome = ItemOutcome(key=record.key)

        try:
            key = parse_object_key(record.key)
        except MalformedEventError as e:
            self._logger.error(f"Skipping record: {e}")
            outcome.error = str(e)
            return outcome

        if key.verified:
            self._logger.debug(f"Ignoring already verified object {record.key}")
            return outcome

        outcome.content_id = key.content_id
        log_context = LogContext(
            correlation_id=key.content_id,
            operation="verify_content",
            component="content_verifier",
        ).with_metadata(bucket=record.bucket, key=record.key)

        content = self._store.get_content_by_raw_key(record.key)
        if content is None:
            self._logger.warning("No content record for object yet", log_context)
            raise RecordNotReadyError([record.key])

        try:
            data = download_object(self._s3_client, record.bucket, record.key)
            self._logger.debug(f"Fetched object of size {len(data)} bytes", log_context)

            sniffed = require_allowed_type(data)
            self._logger.debug(
                f"Detected file type: {sniffed.extension}, MIME type: {sniffed.mime}",
                log_context,
            )

            target_key = key.with_extension(sniffed.extension).verified_key
            copy_object(
                self._s3_client, record.bucket, record.key, target_key, sniffed.mime
            )
            self._store.mark_verified(record.key, target_key, sniffed.mime)

            outcome.outcome = "verified"
            self._logger.info(f"Verified object promoted to {target_key}", log_context)

        except ContentRejectedError as e:
            outcome.outcome = "failed"
            outcome.error = str(e)
            self._logger.warning(f"Rejected content: {e}", log_context)
            self._store.mark_failed(content.content_id, str(e))
            self._aggregator.check(content.batch_id)

        outcome.processing_time = time.time() - start_time
        return outcome
