"""Shared data models for the ingestion pipeline."""

import os
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

CONSUMER_STRATEGIES = ("serial", "multithread", "asyncio")


class PipelineConfig(BaseModel):
    """Connection and consumer settings shared by every worker."""

    region: str = "ap-northeast-1"
    endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    database_url: str = "sqlite:///album-ingest.db"
    verifier_queue_url: Optional[str] = None
    processor_queue_url: Optional[str] = None
    max_messages: int = Field(default=10, ge=1, le=10)
    wait_time_seconds: int = Field(default=20, ge=0, le=20)
    concurrency: int = Field(default=4, ge=1)
    strategy: str = "serial"
    debug: bool = False

    @field_validator("strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        if value not in CONSUMER_STRATEGIES:
            raise ValueError(
                f"strategy must be one of {', '.join(CONSUMER_STRATEGIES)}"
            )
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """Build a config from environment variables, then apply overrides."""
        env_map = {
            "region": "AWS_REGION",
            "endpoint_url": "AWS_ENDPOINT_URL",
            "aws_access_key_id": "AWS_ACCESS_KEY_ID",
            "aws_secret_access_key": "AWS_SECRET_ACCESS_KEY",
            "database_url": "DATABASE_URL",
            "verifier_queue_url": "VERIFIER_QUEUE_URL",
            "processor_queue_url": "PROCESSOR_QUEUE_URL",
            "concurrency": "CONSUMER_CONCURRENCY",
            "strategy": "CONSUMER_STRATEGY",
        }
        values: Dict[str, Any] = {}
        for field_name, env_var in env_map.items():
            env_value = os.getenv(env_var)
            if env_value:
                values[field_name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid pipeline configuration: {exc}") from exc

    def queue_url_for(self, worker: str) -> str:
        """Queue URL feeding the given worker ("verifier" or "processor")."""
        queue_url = {
            "verifier": self.verifier_queue_url,
            "processor": self.processor_queue_url,
        }.get(worker)
        if not queue_url:
            raise ConfigurationError(f"No queue URL configured for worker '{worker}'")
        return queue_url


class PendingStatus(BaseModel):
    """Item not yet terminal."""

    state: Literal["pending"] = "pending"


class CompletedStatus(BaseModel):
    """Item processed: thumbnail written and metadata stored."""

    state: Literal["completed"] = "completed"
    thumbnail_key: str
    byte_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class FailedStatus(BaseModel):
    """Item rejected with a terminal error."""

    state: Literal["failed"] = "failed"
    message: str


ContentStatus = Annotated[
    Union[PendingStatus, CompletedStatus, FailedStatus],
    Field(discriminator="state"),
]


class ContentRecord(BaseModel):
    """Read model of one content item, with its derived status."""

    content_id: str
    batch_id: str
    album_id: str
    kind: str
    raw_key: str
    verified_key: Optional[str] = None
    mime_type: Optional[str] = None
    content_hash: Optional[str] = None
    taken_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    status: ContentStatus = Field(default_factory=PendingStatus)

    @property
    def is_terminal(self) -> bool:
        return self.processed_at is not None


class UploadBatchRecord(BaseModel):
    """Read model of one upload batch."""

    batch_id: str
    album_id: str
    uploader_id: str
    expected_count: int
    status: Literal["pending", "completed"] = "pending"


class PhotoMetadataRecord(BaseModel):
    content_id: str
    width: int
    height: int
    exif: Optional[Dict[str, Any]] = None


class AggregationResult(BaseModel):
    """Outcome of one completion check."""

    batch_id: str
    processed_count: int
    expected_count: int
    completed: bool


class BatchProgress(BaseModel):
    """Progress view of a batch, built from derived item statuses."""

    batch_id: str
    status: Literal["pending", "completed"]
    expected_count: int
    pending_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    items: List[ContentRecord] = Field(default_factory=list)


class ObjectCreatedRecord(BaseModel):
    """Canonical object-created notification seen by every worker."""

    bucket: str
    key: str
    event_name: str = "ObjectCreated:Put"


class ItemOutcome(BaseModel):
    """Result of handling a single notification record."""

    key: str
    content_id: str = ""
    outcome: Literal["verified", "completed", "failed", "skipped"] = "skipped"
    error: str = ""
    processing_time: float = 0.0


class HandlerReport(BaseModel):
    """Summary of one worker invocation."""

    worker: str
    outcomes: List[ItemOutcome] = Field(default_factory=list)

    def count(self, outcome: str) -> int:
        return sum(1 for item in self.outcomes if item.outcome == outcome)
