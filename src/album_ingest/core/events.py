"""Decoding of queue message bodies into canonical object-created records.

A queue message body arrives in one of three shapes:

* ``DirectEnvelope``: an S3 event notification (``{"Records": [...]}``);
* ``WrappedEnvelope``: a notification-service envelope whose ``Message`` field
  holds the S3 event as a JSON string;
* ``UnrecognizedEnvelope``: anything else.

``decode_envelope`` resolves the shape once; workers only ever see
``ObjectCreatedRecord`` instances.
"""

import json
from typing import Any, Dict, List, Literal, Optional, Union
from urllib.parse import unquote_plus

from pydantic import BaseModel, Field, ValidationError

from .exceptions import MalformedEventError
from .logging_config import get_logger
from .models import ObjectCreatedRecord
from .object_keys import is_thumbnail_key

OBJECT_CREATED_PREFIXES = ("ObjectCreated", "s3:ObjectCreated")


class _S3Bucket(BaseModel):
    name: str


class _S3Object(BaseModel):
    key: str
    size: Optional[int] = None


class _S3Entity(BaseModel):
    bucket: _S3Bucket
    object: _S3Object


class S3EventRecord(BaseModel):
    """One record of an S3 event notification, as delivered."""

    eventName: str = ""
    eventTime: Optional[str] = None
    s3: _S3Entity


class DirectEnvelope(BaseModel):
    kind: Literal["direct"] = "direct"
    records: List[Dict[str, Any]] = Field(default_factory=list)


class WrappedEnvelope(BaseModel):
    kind: Literal["wrapped"] = "wrapped"
    records: List[Dict[str, Any]] = Field(default_factory=list)
    topic_arn: Optional[str] = None


class UnrecognizedEnvelope(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    reason: str
    body: Any = None


Envelope = Union[DirectEnvelope, WrappedEnvelope, UnrecognizedEnvelope]


def decode_envelope(body: Union[str, bytes, Dict[str, Any]]) -> Envelope:
    """Classify a queue message body (JSON text or already-parsed dict)."""
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body or "{}")
        except json.JSONDecodeError as exc:
            return UnrecognizedEnvelope(reason=f"Body is not JSON: {exc}", body=body)

    if not isinstance(body, dict):
        return UnrecognizedEnvelope(reason="Body is not a JSON object", body=body)

    records = body.get("Records")
    if isinstance(records, list):
        return DirectEnvelope(records=records)

    message = body.get("Message")
    if isinstance(message, str):
        try:
            inner = json.loads(message)
        except json.JSONDecodeError as exc:
            return UnrecognizedEnvelope(reason=f"Wrapped message is not JSON: {exc}", body=body)
        if isinstance(inner, dict) and isinstance(inner.get("Records"), list):
            return WrappedEnvelope(records=inner["Records"], topic_arn=body.get("TopicArn"))
        return UnrecognizedEnvelope(reason="Wrapped message carries no Records", body=body)

    return UnrecognizedEnvelope(reason="Unknown message format", body=body)


def parse_record(raw_record: Dict[str, Any]) -> Optional[ObjectCreatedRecord]:
    """
    Turn one raw notification record into an ``ObjectCreatedRecord``.

    Returns None for records the pipeline ignores (non-creation events and
    thumbnail keys).

    Raises:
        MalformedEventError: If the record lacks a bucket or key
    """
    try:
        record = S3EventRecord.model_validate(raw_record)
    except ValidationError as exc:
        raise MalformedEventError(f"Invalid notification record: {exc}") from exc

    if not record.eventName.startswith(OBJECT_CREATED_PREFIXES):
        return None

    key = unquote_plus(record.s3.object.key)
    if is_thumbnail_key(key):
        return None

    return ObjectCreatedRecord(
        bucket=record.s3.bucket.name, key=key, event_name=record.eventName
    )


def object_created_records(event: Union[Envelope, Dict[str, Any]]) -> List[ObjectCreatedRecord]:
    """
    All object-created records of an event, malformed ones logged and dropped.

    Accepts either a decoded envelope or a raw S3 event dict.
    """
    logger = get_logger("album-ingest.events")
    if isinstance(event, dict):
        event = decode_envelope(event)
    if isinstance(event, UnrecognizedEnvelope):
        logger.error(f"Unrecognized notification skipped: {event.reason}")
        return []

    results: List[ObjectCreatedRecord] = []
    for raw_record in event.records:
        try:
            record = parse_record(raw_record)
        except MalformedEventError as exc:
            logger.error(f"Skipping malformed record: {exc}")
            continue
        if record is None:
            logger.debug(f"Ignoring record: {raw_record.get('eventName', '')}")
            continue
        results.append(record)
    return results
