"""Relational metadata store for upload batches and content items."""

from .repository import MetadataStore, derive_status
from .schema import Base, ContentItem, PhotoMetadata, UploadBatch

__all__ = [
    "MetadataStore",
    "derive_status",
    "Base",
    "ContentItem",
    "PhotoMetadata",
    "UploadBatch",
]
