"""Relational schema for upload batches, content items and photo metadata."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class UploadBatch(Base):
    """A user-initiated group of files uploaded together."""

    __tablename__ = "uploads"

    batch_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    album_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    uploader_id: Mapped[str] = mapped_column(String(64), nullable=False)
    photo_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    video_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    contents: Mapped[List["ContentItem"]] = relationship(back_populates="batch")

    @property
    def expected_count(self) -> int:
        return self.photo_count + self.video_count

    def __repr__(self) -> str:
        return f"<UploadBatch(batch_id={self.batch_id}, status={self.status})>"


class ContentItem(Base):
    """
    One uploaded file. There is no status column: the status is derived from
    ``thumbnail_key``, ``error_message`` and ``processed_at``.
    """

    __tablename__ = "contents"
    __table_args__ = (
        CheckConstraint(
            "thumbnail_key IS NULL OR error_message IS NULL",
            name="ck_contents_single_outcome",
        ),
    )

    content_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    batch_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("uploads.batch_id"), index=True, nullable=False
    )
    album_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="image")
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Storage information
    raw_key: Mapped[str] = mapped_column(String(1024), unique=True, index=True, nullable=False)
    verified_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    thumbnail_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    byte_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    taken_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    batch: Mapped["UploadBatch"] = relationship(back_populates="contents")
    photo: Mapped[Optional["PhotoMetadata"]] = relationship(
        back_populates="content", lazy="joined", uselist=False
    )

    def __repr__(self) -> str:
        return f"<ContentItem(content_id={self.content_id}, raw_key={self.raw_key})>"


class PhotoMetadata(Base):
    """Image-only extension of a content item."""

    __tablename__ = "photos"

    content_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("contents.content_id"), primary_key=True
    )
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    exif: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    content: Mapped["ContentItem"] = relationship(back_populates="photo")
