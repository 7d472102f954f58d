"""Metadata store: the pipeline's only shared mutable state.

Every write is an absolute "set" on a single row. Terminal writes
(``mark_failed``, ``complete_content``) are guarded by ``processed_at IS NULL``
so an item that already reached a terminal state is never rewritten.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.logging_config import get_logger
from ..core.models import (
    CompletedStatus,
    ContentRecord,
    ContentStatus,
    FailedStatus,
    PendingStatus,
    PhotoMetadataRecord,
    UploadBatchRecord,
)
from .schema import Base, ContentItem, PhotoMetadata, UploadBatch, utcnow


def derive_status(item: ContentItem) -> ContentStatus:
    """
    The one place a content item's status is derived from its columns.

    ``failed`` if an error message is present, ``completed`` if a thumbnail
    key is present, ``pending`` otherwise.
    """
    if item.error_message is not None:
        return FailedStatus(message=item.error_message)
    if item.thumbnail_key is not None:
        photo = item.photo
        return CompletedStatus(
            thumbnail_key=item.thumbnail_key,
            byte_size=item.byte_size,
            width=photo.width if photo else None,
            height=photo.height if photo else None,
        )
    return PendingStatus()


def to_content_record(item: ContentItem) -> ContentRecord:
    return ContentRecord(
        content_id=item.content_id,
        batch_id=item.batch_id,
        album_id=item.album_id,
        kind=item.kind,
        raw_key=item.raw_key,
        verified_key=item.verified_key,
        mime_type=item.mime_type,
        content_hash=item.content_hash,
        taken_at=item.taken_at,
        processed_at=item.processed_at,
        status=derive_status(item),
    )


def to_batch_record(batch: UploadBatch) -> UploadBatchRecord:
    return UploadBatchRecord(
        batch_id=batch.batch_id,
        album_id=batch.album_id,
        uploader_id=batch.uploader_id,
        expected_count=batch.expected_count,
        status=batch.status,
    )


class MetadataStore:
    """SQLAlchemy-backed implementation of ``MetadataStoreProtocol``."""

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._logger = get_logger("album-ingest.metadata-store")

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "MetadataStore":
        """Create a store for a database URL; in-memory SQLite shares one connection."""
        engine_kwargs: Dict[str, Any] = {"echo": echo}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True
        return cls(create_engine(database_url, **engine_kwargs))

    def session(self) -> Session:
        return self._session_factory()

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self._engine)
        self._logger.info("Metadata schema ensured")

    # Registration happens in the URL-issuing endpoint; tests use it too.

    def register_batch(
        self,
        batch_id: str,
        album_id: str,
        uploader_id: str,
        photo_count: int,
        video_count: int = 0,
    ) -> UploadBatchRecord:
        with self.session() as session, session.begin():
            batch = UploadBatch(
                batch_id=batch_id,
                album_id=album_id,
                uploader_id=uploader_id,
                photo_count=photo_count,
                video_count=video_count,
            )
            session.add(batch)
            session.flush()
            return to_batch_record(batch)

    def register_content(
        self,
        content_id: str,
        batch_id: str,
        album_id: str,
        raw_key: str,
        kind: str = "image",
    ) -> ContentRecord:
        with self.session() as session, session.begin():
            item = ContentItem(
                content_id=content_id,
                batch_id=batch_id,
                album_id=album_id,
                raw_key=raw_key,
                kind=kind,
            )
            session.add(item)
            session.flush()
            return to_content_record(item)

    # Content items

    def get_content(self, content_id: str) -> Optional[ContentRecord]:
        with self.session() as session:
            item = session.get(ContentItem, content_id)
            return to_content_record(item) if item else None

    def get_content_by_raw_key(self, raw_key: str) -> Optional[ContentRecord]:
        with self.session() as session:
            item = session.scalars(
                select(ContentItem).where(ContentItem.raw_key == raw_key)
            ).first()
            return to_content_record(item) if item else None

    def list_contents(self, batch_id: str) -> List[ContentRecord]:
        with self.session() as session:
            items = session.scalars(
                select(ContentItem)
                .where(ContentItem.batch_id == batch_id)
                .order_by(ContentItem.created_at, ContentItem.content_id)
            ).unique().all()
            return [to_content_record(item) for item in items]

    def mark_verified(self, raw_key: str, verified_key: str, mime_type: str) -> bool:
        """Record the promoted object. Returns False if no row has ``raw_key``."""
        with self.session() as session, session.begin():
            result = session.execute(
                update(ContentItem)
                .where(ContentItem.raw_key == raw_key)
                .values(
                    verified_key=verified_key,
                    mime_type=mime_type,
                    verified_at=func.coalesce(ContentItem.verified_at, utcnow()),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def mark_failed(self, content_id: str, error_message: str) -> bool:
        """Record a terminal failure. Returns False if the item was already terminal or absent."""
        with self.session() as session, session.begin():
            result = session.execute(
                update(ContentItem)
                .where(
                    ContentItem.content_id == content_id,
                    ContentItem.processed_at.is_(None),
                )
                .values(
                    error_message=error_message,
                    processed_at=utcnow(),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount > 0
        if updated:
            self._logger.info(f"Marked content {content_id} as failed: {error_message}")
        return updated

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
        """
        Mark an item completed and create-or-update its photo metadata, in one
        transaction. Returns False (and writes nothing) if the item was
        already terminal or does not exist.
        """
        with self.session() as session, session.begin():
            now = utcnow()
            result = session.execute(
                update(ContentItem)
                .where(
                    ContentItem.content_id == content_id,
                    ContentItem.processed_at.is_(None),
                )
                .values(
                    thumbnail_key=thumbnail_key,
                    byte_size=byte_size,
                    content_hash=content_hash,
                    taken_at=taken_at,
                    processed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            photo = session.get(PhotoMetadata, content_id)
            if photo is None:
                session.add(
                    PhotoMetadata(
                        content_id=content_id, width=width, height=height, exif=exif
                    )
                )
            else:
                photo.width = width
                photo.height = height
                photo.exif = exif
                photo.updated_at = now
        return True

    def get_photo_metadata(self, content_id: str) -> Optional[PhotoMetadataRecord]:
        with self.session() as session:
            photo = session.get(PhotoMetadata, content_id)
            if photo is None:
                return None
            return PhotoMetadataRecord(
                content_id=photo.content_id,
                width=photo.width,
                height=photo.height,
                exif=photo.exif,
            )

    # Upload batches

    def get_batch(self, batch_id: str) -> Optional[UploadBatchRecord]:
        with self.session() as session:
            batch = session.get(UploadBatch, batch_id)
            return to_batch_record(batch) if batch else None

    def count_processed(self, batch_id: str) -> int:
        """Items of the batch that reached a terminal state."""
        with self.session() as session:
            return session.scalar(
                select(func.count())
                .select_from(ContentItem)
                .where(
                    ContentItem.batch_id == batch_id,
                    ContentItem.processed_at.is_not(None),
                )
            ) or 0

    def mark_batch_completed(self, batch_id: str) -> None:
        """Set the batch status to ``completed``; repeating it is harmless."""
        with self.session() as session, session.begin():
            session.execute(
                update(UploadBatch)
                .where(UploadBatch.batch_id == batch_id)
                .values(status="completed", updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
