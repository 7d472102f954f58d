"""Content processor: metadata extraction and thumbnailing of verified uploads."""

import hashlib
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.error_handling import BatchOperationContextManager
from ..core.events import object_created_records
from ..core.exceptions import ContentRejectedError, ContentTooLargeError, MalformedEventError
from ..core.image_utils import (
    MAX_CONTENT_BYTES,
    THUMBNAIL_CONTENT_TYPE,
    create_thumbnail,
    decode_image,
    extract_capture_time,
    extract_exif_data,
    require_allowed_type,
)
from ..core.models import HandlerReport, ItemOutcome, ObjectCreatedRecord
from ..core.object_keys import ObjectKey, parse_object_key
from ..core.observability import LogContext
from ..core.protocols import (
    CompletionCheckProtocol,
    LoggerProtocol,
    MetadataStoreProtocol,
    S3ClientProtocol,
)
from .common import download_object, upload_object


@dataclass
class ProcessedContent:
    """Everything steps 1-7 produce for one object."""

    thumbnail_key: str
    byte_size: int
    content_hash: str
    width: int
    height: int
    taken_at: Optional[datetime] = None
    exif: Dict[str, Any] = field(default_factory=dict)


class ContentProcessor:
    """
    Handles verified-object notifications.

    Each object goes through a fixed sequence of gates: fetch, size ceiling,
    type sniffing, decode, EXIF extraction, thumbnail, thumbnail upload. Any
    content error along the way becomes a terminal failure on the item. Either
    way the parent batch's completion is re-checked.
    """

    name = "processor"

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
        report = HandlerReport(worker=self.name)
        with BatchOperationContextManager(operation_name="Content processing") as batch:
            for record in records:
                outcome = self.process_record(record)
                report.outcomes.append(outcome)
                if outcome.outcome == "failed":
                    batch.add_error(outcome.error, item_identifier=record.key)
        return report

    def process_record(self, record: ObjectCreatedRecord) -> ItemOutcome:
        start_time = time.time()
        outcome = ItemOutcome(key=record.key)

        try:
            key = parse_object_key(record.key)
        except MalformedEventError as e:
            self._logger.error(f"Skipping record: {e}")
            outcome.error = str(e)
            return outcome

        outcome.content_id = key.content_id
        log_context = LogContext(
            correlation_id=key.content_id,
            operation="process_content",
            component="content_processor",
        ).with_metadata(bucket=record.bucket, key=record.key)

        content = self._store.get_content(key.content_id)
        if content is None:
            self._logger.error(f"Content not found: {key.content_id}", log_context)
            outcome.error = "content record not found"
            return outcome

        if content.is_terminal:
            # Redelivery after the item update: only the aggregation may be missing.
            self._logger.info(
                f"Content already {content.status.state}, rechecking upload", log_context
            )
            self._aggregator.check(content.batch_id)
            outcome.processing_time = time.time() - start_time
            return outcome

        try:
            processed = self.build_thumbnail(record, key, log_context)
        except ContentRejectedError as e:
            outcome.outcome = "failed"
            outcome.error = str(e)
            self._logger.warning(f"Content failed: {e}", log_context)
            self._store.mark_failed(key.content_id, str(e))
            self._aggregator.check(content.batch_id)
            outcome.processing_time = time.time() - start_time
            return outcome

        updated = self._store.complete_content(
            content_id=key.content_id,
            thumbnail_key=processed.thumbnail_key,
            byte_size=processed.byte_size,
            content_hash=processed.content_hash,
            taken_at=processed.taken_at,
            width=processed.width,
            height=processed.height,
            exif=processed.exif or None,
        )
        if updated:
            outcome.outcome = "completed"
            self._logger.info(
                f"Successfully processed content: {key.content_id}", log_context
            )
        else:
            self._logger.info("Content reached a terminal state concurrently", log_context)

        self._aggregator.check(content.batch_id)
        outcome.processing_time = time.time() - start_time
        return outcome

    def build_thumbnail(
        self, record: ObjectCreatedRecord, key: ObjectKey, log_context: LogContext
    ) -> ProcessedContent:
        """
        Steps 1-7: fetch, check, decode, extract and store the thumbnail.

        Raises:
            ContentRejectedError: For any terminal content problem
            StorageError: If the object store is unavailable
        """
        # Step 1: Fetch
        data = download_object(self._s3_client, record.bucket, record.key)
        self._logger.debug(f"Fetched object of size {len(data)} bytes", log_context)

        # Step 2: Size ceiling
        if len(data) > MAX_CONTENT_BYTES:
            raise ContentTooLargeError(
                f"File size exceeds maximum allowed ({MAX_CONTENT_BYTES} bytes)"
            )

        # Step 3: Sniff again
        sniffed = require_allowed_type(data)
        self._logger.debug(f"Detected file type: {sniffed.extension}", log_context)

        # Step 4: Decode
        image = decode_image(data)
        width, height = image.size

        # Step 5: Metadata; absence is not an error
        exif = extract_exif_data(image)
        taken_at = extract_capture_time(exif)

        # Step 6: Thumbnail
        thumbnail_bytes = create_thumbnail(image)

        # Step 7: Store it
        upload_object(
            self._s3_client,
            record.bucket,
            key.thumbnail_key,
            thumbnail_bytes,
            THUMBNAIL_CONTENT_TYPE,
        )
        self._logger.info(f"Successfully created thumbnail: {key.thumbnail_key}", log_context)

        return ProcessedContent(
            thumbnail_key=key.thumbnail_key,
            byte_size=len(data),
            content_hash=hashlib.sha256(data).hexdigest(),
            width=width,
            height=height,
            taken_at=taken_at,
            exif=exif,
        )
