"""Exception hierarchy for the ingestion pipeline.

Three families matter to the workers:

* transient infrastructure errors (``StorageError``, ``RecordNotReadyError``)
  escape the worker so the queue redelivers the message;
* content errors (``ContentRejectedError`` and subclasses) become a terminal
  failure on the content item;
* malformed events (``MalformedEventError``) are logged and skipped.
"""

from __future__ import annotations


class IngestionPipelineError(Exception):
    """Base exception for all ingestion pipeline errors."""


class ConfigurationError(IngestionPipelineError):
    """Error raised for invalid configuration options."""


class TransientError(IngestionPipelineError):
    """An error the queue's redelivery may fix."""


class StorageError(TransientError):
    """Error raised when the object store cannot be reached or refuses a call."""


class RecordNotReadyError(TransientError):
    """The content record for an uploaded object does not exist yet."""

    def __init__(self, keys: list[str]):
        self.keys = list(keys)
        super().__init__(f"No content record yet for: {', '.join(self.keys)}")


class MalformedEventError(IngestionPipelineError):
    """A notification or object key that cannot be interpreted."""


class ContentRejectedError(IngestionPipelineError):
    """Base class for per-item failures that are recorded, never retried."""


class ObjectNotFoundError(ContentRejectedError):
    """The uploaded object no longer exists in the store."""


class ContentTooLargeError(ContentRejectedError):
    """The uploaded object exceeds the byte-size ceiling."""


class UnsupportedContentTypeError(ContentRejectedError):
    """The sniffed file type is undetectable or not allowed."""


class CorruptImageError(ContentRejectedError):
    """The object claims an image type but cannot be decoded."""
