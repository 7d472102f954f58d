"""Testing utilities and fakes for the ingestion pipeline."""

from .fakes import (
    FakeAsyncSQSClient,
    FakeLogger,
    FakeS3Client,
    FakeSQSClient,
    S3Bucket,
    S3Object,
    create_test_image,
    create_test_store,
    s3_event,
    seed_upload,
    setup_test_environment,
    wrapped_event,
)

__all__ = [
    "FakeAsyncSQSClient",
    "FakeLogger",
    "FakeS3Client",
    "FakeSQSClient",
    "S3Bucket",
    "S3Object",
    "create_test_image",
    "create_test_store",
    "s3_event",
    "seed_upload",
    "setup_test_environment",
    "wrapped_event",
]
