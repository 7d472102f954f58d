"""Protocol definitions for dependency injection and testability."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    AggregationResult,
    BatchProgress,
    ContentRecord,
    HandlerReport,
    ObjectCreatedRecord,
    PhotoMetadataRecord,
    UploadBatchRecord,
)


class S3ClientProtocol(Protocol):
    """Protocol for object store operations."""

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """Get object from S3."""
        ...

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str
    ) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def copy_object(self, **kwargs: Any) -> Dict[str, Any]:
        """Server-side copy within S3."""
        ...


class SQSClientProtocol(Protocol):
    """Protocol for queue operations."""

    def receive_message(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def delete_message(self, QueueUrl: str, ReceiptHandle: str) -> Dict[str, Any]:
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...


class MetadataStoreProtocol(Protocol):
    """The relational operations the pipeline relies on."""

    def get_content(self, content_id: str) -> Optional[ContentRecord]:
        ...

    def get_content_by_raw_key(self, raw_key: str) -> Optional[ContentRecord]:
        ...

    def mark_verified(
        self, raw_key: str, verified_key: str, mime_type: str
    ) -> bool:
        ...

    def mark_failed(self, content_id: str, error_message: str) -> bool:
        ...

    def complete_content(
        self,
        content_id: str,
        thumbnail_key: str,
        byte_size: int,
        content_hash: str,
        taken_at: Optional[datetime],
        width: int,
        height: int,
        exif: Optional[Dict[str, Any]],
    ) -> bool:
        ...

    def get_photo_metadata(self, content_id: str) -> Optional[PhotoMetadataRecord]:
        ...

    def get_batch(self, batch_id: str) -> Optional[UploadBatchRecord]:
        ...

    def count_processed(self, batch_id: str) -> int:
        ...

    def mark_batch_completed(self, batch_id: str) -> None:
        ...

    def list_contents(self, batch_id: str) -> List[ContentRecord]:
        ...


class CompletionCheckProtocol(Protocol):
    """Anything that can recompute a batch's completion."""

    def check(self, batch_id: str) -> Optional[AggregationResult]:
        ...

    def summarize(self, batch_id: str) -> Optional[BatchProgress]:
        ...


class WorkerProtocol(Protocol):
    """A stage of the pipeline: handles one delivered notification."""

    name: str

    def handle_records(self, records: List[ObjectCreatedRecord]) -> HandlerReport:
        ...
