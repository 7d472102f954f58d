"""Factory classes for creating configured clients and workers."""

from typing import TYPE_CHECKING, Any, Dict, Optional

import boto3
from botocore.config import Config

from ..store import MetadataStore
from ..workers.completion import CompletionAggregator
from ..workers.processor import ContentProcessor
from ..workers.verifier import ContentVerifier
from .exceptions import ConfigurationError
from .models import PipelineConfig
from .observability import StructuredLogger
from .protocols import LoggerProtocol, MetadataStoreProtocol, S3ClientProtocol

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client
    from mypy_boto3_sqs.client import SQSClient
else:
    S3Client = Any
    SQSClient = Any


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str, level: Optional[str] = None) -> LoggerProtocol:
        """Create a context-aware logger."""
        return StructuredLogger(name, level=level)


class AWSClientFactory:
    """Factory for boto3 clients built from a ``PipelineConfig``."""

    @staticmethod
    def client_kwargs(config: PipelineConfig, service: str) -> Dict[str, Any]:
        """
        Keyword arguments for ``Session.client``.

        An overridden endpoint (a local S3/SQS emulator) gets path-style
        addressing, since emulators rarely resolve virtual-host buckets.
        """
        kwargs: Dict[str, Any] = {"region_name": config.region}
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url
            if service == "s3":
                kwargs["config"] = Config(s3={"addressing_style": "path"})
        if config.aws_access_key_id and config.aws_secret_access_key:
            kwargs["aws_access_key_id"] = config.aws_access_key_id
            kwargs["aws_secret_access_key"] = config.aws_secret_access_key
        return kwargs

    @classmethod
    def create_s3_client(cls, config: PipelineConfig) -> S3Client:
        session = boto3.Session()
        return session.client("s3", **cls.client_kwargs(config, "s3"))

    @classmethod
    def create_sqs_client(cls, config: PipelineConfig) -> SQSClient:
        session = boto3.Session()
        return session.client("sqs", **cls.client_kwargs(config, "sqs"))


class StoreFactory:
    """Factory for the relational metadata store."""

    @staticmethod
    def create_store(config: PipelineConfig) -> MetadataStore:
        return MetadataStore.from_url(config.database_url, echo=config.debug)


class PipelineFactory:
    """Factory for fully wired pipeline workers."""

    @staticmethod
    def _dependencies(
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol],
        store: Optional[MetadataStoreProtocol],
        logger: Optional[LoggerProtocol],
        logger_name: str,
    ):
        # Create default dependencies if not provided
        if s3_client is None:
            s3_client = AWSClientFactory.create_s3_client(config)
        if store is None:
            store = StoreFactory.create_store(config)
        if logger is None:
            logger = LoggerFactory.create_logger(logger_name)

        aggregator = CompletionAggregator(store, logger)
        return s3_client, store, aggregator, logger

    @classmethod
    def create_verifier(
        cls,
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        store: Optional[MetadataStoreProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        return ContentVerifier(
            *cls._dependencies(config, s3_client, store, logger, "album-ingest.verifier")
        )

    @classmethod
    def create_processor(
        cls,
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        store: Optional[MetadataStoreProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        return ContentProcessor(
            *cls._dependencies(config, s3_client, store, logger, "album-ingest.processor")
        )

    @classmethod
    def create_worker(cls, worker: str, config: PipelineConfig, **dependencies: Any):
        """Create a worker by name ("verifier" or "processor")."""
        if worker == "verifier":
            return cls.create_verifier(config, **dependencies)
        if worker == "processor":
            return cls.create_processor(config, **dependencies)
        raise ConfigurationError(f"Unknown worker: {worker}")
