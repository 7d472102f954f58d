"""Object-store helpers and entry-point glue shared by the workers."""

from typing import Any, Callable, Dict, TYPE_CHECKING

from ..core import get_logger
from ..core.error_handling import storage_operation
from ..core.events import object_created_records

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client
else:
    S3Client = Any


@storage_operation
def download_object(s3_client: S3Client, bucket: str, key: str) -> bytes:
    """Fetch the full body of ``s3://bucket/key``."""
    logger = get_logger("album-ingest.storage")
    logger.debug(f"Downloading s3://{bucket}/{key}")
    response = s3_client.get_object(Bucket=bucket, Key=key)
    return response["Body"].read()


@storage_operation
def upload_object(
    s3_client: S3Client, bucket: str, key: str, data: bytes, content_type: str
) -> None:
    logger = get_logger("album-ingest.storage")
    logger.debug(f"Uploading {len(data)} bytes to s3://{bucket}/{key}")
    s3_client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)


@storage_operation
def copy_object(
    s3_client: S3Client, bucket: str, source_key: str, dest_key: str, content_type: str
) -> None:
    """Server-side copy that replaces the content type on the destination."""
    logger = get_logger("album-ingest.storage")
    logger.debug(f"Copying s3://{bucket}/{source_key} to s3://{bucket}/{dest_key}")
    s3_client.copy_object(
        Bucket=bucket,
        Key=dest_key,
        CopySource={"Bucket": bucket, "Key": source_key},
        ContentType=content_type,
        MetadataDirective="REPLACE",
    )


def as_lambda_handler(worker) -> Callable[[Dict[str, Any], Any], Dict[str, Any]]:
    """
    Wrap a constructed worker as an ``(event, context)`` function.

    Transient errors propagate out of the returned function; everything else
    is reported in the returned summary.
    """

    def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        records = object_created_records(event)
        report = worker.handle_records(records)
        return report.model_dump()

    handler.__name__ = f"{worker.name}_handler"
    return handler
