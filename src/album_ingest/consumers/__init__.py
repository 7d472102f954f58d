"""Queue consumers with different concurrency strategies."""

from typing import Any, Dict, Optional, Type

from ..core.exceptions import ConfigurationError
from ..core.factories import AWSClientFactory
from ..core.models import PipelineConfig
from ..core.protocols import WorkerProtocol
from .asyncio_consumer import AsyncioConsumer
from .common import ConsumerStats, QueueConsumer, process_message
from .multithread import ThreadPoolConsumer
from .serial import SerialConsumer

CONSUMERS: Dict[str, Type[QueueConsumer]] = {
    "serial": SerialConsumer,
    "multithread": ThreadPoolConsumer,
    "asyncio": AsyncioConsumer,
}


def create_consumer(
    worker: WorkerProtocol,
    config: PipelineConfig,
    queue_url: Optional[str] = None,
    sqs_client: Any = None,
) -> QueueConsumer:
    """
    Build the consumer for ``config.strategy``.

    The sync strategies get a boto3 SQS client when none is given; the
    asyncio strategy opens its own aioboto3 client on ``run``.
    """
    consumer_class = CONSUMERS.get(config.strategy)
    if consumer_class is None:
        raise ConfigurationError(f"Unknown consumer strategy: {config.strategy}")

    queue_url = queue_url or config.queue_url_for(worker.name)
    if sqs_client is None and consumer_class is not AsyncioConsumer:
        sqs_client = AWSClientFactory.create_sqs_client(config)
    return consumer_class(worker, sqs_client, queue_url, config)


__all__ = [
    "CONSUMERS",
    "AsyncioConsumer",
    "ConsumerStats",
    "QueueConsumer",
    "SerialConsumer",
    "ThreadPoolConsumer",
    "create_consumer",
    "process_message",
]
