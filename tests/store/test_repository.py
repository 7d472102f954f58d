"""Tests for the SQLAlchemy metadata store."""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from album_ingest.store import ContentItem, derive_status
from album_ingest.testing import create_test_store


@pytest.fixture
def store():
    store = create_test_store()
    store.register_batch(batch_id="b1", album_id="a1", uploader_id="u1", photo_count=2, video_count=1)
    store.register_content(content_id="c1", batch_id="b1", album_id="a1", raw_key="raws/b1/c1.jpg")
    store.register_content(content_id="c2", batch_id="b1", album_id="a1", raw_key="raws/b1/c2.png")
    return store


def complete(store, content_id, **overrides):
    values = dict(
        content_id=content_id,
        thumbnail_key=f"thumbnails/b1/{content_id}.jpg",
        byte_size=1234,
        content_hash="ab" * 32,
        taken_at=datetime(2023, 6, 15, 10, 30),
        width=640,
        height=480,
        exif={"Make": "TestCam"},
    )
    values.update(overrides)
    return store.complete_content(**values)


class TestDeriveStatus:
    """Status is derived from the columns, never stored."""

    def test_pending(self):
        assert derive_status(ContentItem(content_id="x", raw_key="k")).state == "pending"

    def test_failed_wins(self):
        item = ContentItem(content_id="x", raw_key="k", error_message="Unsupported file type: bmp")
        status = derive_status(item)
        assert status.state == "failed"
        assert status.message == "Unsupported file type: bmp"

    def test_completed(self):
        item = ContentItem(content_id="x", raw_key="k", thumbnail_key="thumbnails/b/x.jpg", byte_size=10)
        status = derive_status(item)
        assert status.state == "completed"
        assert status.thumbnail_key == "thumbnails/b/x.jpg"
        assert status.width is None


class TestBatches:
    def test_expected_count_includes_videos(self, store):
        assert store.get_batch("b1").expected_count == 3
        assert store.get_batch("b1").status == "pending"

    def test_missing_batch(self, store):
        assert store.get_batch("nope") is None

    def test_mark_batch_completed_is_repeatable(self, store):
        store.mark_batch_completed("b1")
        store.mark_batch_completed("b1")
        assert store.get_batch("b1").status == "completed"


class TestContentReads:
    def test_get_by_id_and_raw_key(self, store):
        assert store.get_content("c1").raw_key == "raws/b1/c1.jpg"
        assert store.get_content_by_raw_key("raws/b1/c2.png").content_id == "c2"
        assert store.get_content_by_raw_key("raws/b1/none.jpg") is None

    def test_raw_key_is_unique(self, store):
        with pytest.raises(IntegrityError):
            store.register_content(content_id="c9", batch_id="b1", album_id="a1", raw_key="raws/b1/c1.jpg")

    def test_list_contents(self, store):
        assert {c.content_id for c in store.list_contents("b1")} == {"c1", "c2"}


class TestMarkVerified:
    def test_records_verified_key_and_type(self, store):
        assert store.mark_verified("raws/b1/c2.png", "verified/raws/b1/c2.jpg", "image/jpeg")
        content = store.get_content("c2")
        assert content.verified_key == "verified/raws/b1/c2.jpg"
        assert content.mime_type == "image/jpeg"
        assert content.status.state == "pending"

    def test_unknown_raw_key(self, store):
        assert not store.mark_verified("raws/b1/none.jpg", "verified/raws/b1/none.jpg", "image/jpeg")

    def test_repeating_keeps_first_verification_time(self, store):
        store.mark_verified("raws/b1/c1.jpg", "verified/raws/b1/c1.jpg", "image/jpeg")
        with store.session() as session:
            first = session.get(ContentItem, "c1").verified_at
        store.mark_verified("raws/b1/c1.jpg", "verified/raws/b1/c1.jpg", "image/jpeg")
        with store.session() as session:
            assert session.get(ContentItem, "c1").verified_at == first


class TestTerminalWrites:
    """Terminal writes only apply to items that are not terminal yet."""

    def test_complete_content_sets_status_and_photo(self, store):
        assert complete(store, "c1")

        content = store.get_content("c1")
        assert content.status.state == "completed"
        assert content.status.width == 640
        assert content.status.byte_size == 1234
        assert content.is_terminal
        assert content.content_hash == "ab" * 32
        photo = store.get_photo_metadata("c1")
        assert (photo.width, photo.height) == (640, 480)
        assert photo.exif == {"Make": "TestCam"}

    def test_second_completion_is_rejected(self, store):
        assert complete(store, "c1")
        assert not complete(store, "c1", width=1, height=1)

        assert store.get_photo_metadata("c1").width == 640
        with store.session() as session:
            assert session.query(ContentItem).filter_by(content_id="c1").count() == 1

    def test_failure_after_completion_is_ignored(self, store):
        complete(store, "c1")
        assert not store.mark_failed("c1", "late failure")
        assert store.get_content("c1").status.state == "completed"

    def test_completion_after_failure_is_ignored(self, store):
        assert store.mark_failed("c1", "Image is corrupted or invalid")
        assert not complete(store, "c1")

        content = store.get_content("c1")
        assert content.status.state == "failed"
        assert store.get_photo_metadata("c1") is None

    def test_count_processed(self, store):
        assert store.count_processed("b1") == 0
        complete(store, "c1")
        store.mark_failed("c2", "Unsupported file type: bmp")
        assert store.count_processed("b1") == 2

    def test_unknown_content(self, store):
        assert not store.mark_failed("nope", "x")
        assert not complete(store, "nope")
