"""Common functions shared across all queue consumer implementations."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..core import get_logger
from ..core.events import UnrecognizedEnvelope, decode_envelope, object_created_records
from ..core.exceptions import TransientError
from ..core.models import PipelineConfig
from ..core.observability import MetricsCollector, PerformanceMetrics
from ..core.protocols import SQSClientProtocol, WorkerProtocol


@dataclass
class ConsumerStats:
    """Counters for one consumer run."""

    polls: int = 0
    received: int = 0
    acknowledged: int = 0
    retained: int = 0

    def add(self, acknowledged: bool) -> None:
        self.received += 1
        if acknowledged:
            self.acknowledged += 1
        else:
            self.retained += 1


def process_message(
    worker: WorkerProtocol,
    message: Dict[str, Any],
    metrics: Optional[MetricsCollector] = None,
) -> bool:
    """
    Run ``worker`` on one queue message.

    Returns:
        True if the message must be deleted from the queue. Messages that
        raised a transient error (or anything unexpected) are left for
        redelivery; unrecognized bodies are deleted.
    """
    logger = get_logger("album-ingest.consumer")
    message_id = message.get("MessageId", "unknown")
    start_time = time.time()
    error_message: Optional[str] = None
    acknowledge = False

    envelope = decode_envelope(message.get("Body", ""))
    if isinstance(envelope, UnrecognizedEnvelope):
        logger.error(f"[{message_id}] Unrecognized message discarded: {envelope.reason}")
        error_message = envelope.reason
        acknowledge = True
    else:
        try:
            report = worker.handle_records(object_created_records(envelope))
            acknowledge = True
            logger.info(
                f"[{message_id}] {worker.name} handled {len(report.outcomes)} record(s): "
                f"{report.count('verified')} verified, {report.count('completed')} completed, "
                f"{report.count('failed')} failed, {report.count('skipped')} skipped"
            )
        except TransientError as e:
            error_message = str(e)
            logger.warning(f"[{message_id}] Left for redelivery: {e}")
        except Exception as e:
            error_message = str(e)
            logger.error(f"[{message_id}] Unexpected error, left for redelivery: {e}", exc_info=True)

    if metrics is not None:
        metrics.record_metric(
            PerformanceMetrics(
                operation=f"{worker.name}.message",
                start_time=start_time,
                end_time=time.time(),
                success=acknowledge and error_message is None,
                error_message=error_message,
                metadata={"message_id": message_id},
            )
        )
    return acknowledge


def receive_messages(
    sqs_client: SQSClientProtocol, queue_url: str, config: PipelineConfig
) -> List[Dict[str, Any]]:
    """Long-poll the queue once."""
    response = sqs_client.receive_message(
        QueueUrl=queue_url,
        MaxNumberOfMessages=config.max_messages,
        WaitTimeSeconds=config.wait_time_seconds,
    )
    return response.get("Messages", [])


def delete_message(
    sqs_client: SQSClientProtocol, queue_url: str, message: Dict[str, Any]
) -> bool:
    """Acknowledge a message. A failed delete only means a harmless redelivery."""
    logger = get_logger("album-ingest.consumer")
    try:
        sqs_client.delete_message(QueueUrl=queue_url, ReceiptHandle=message["ReceiptHandle"])
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"[{message.get('MessageId', 'unknown')}] Delete failed: {e}")
        return False


def log_metrics_summary(metrics: MetricsCollector, worker_name: str) -> None:
    """Log final consumer statistics."""
    logger = get_logger("album-ingest.consumer")
    summary = metrics.get_summary(f"{worker_name}.message")
    if not summary:
        logger.info(f"{worker_name} consumer stopped; no messages handled")
        return

    logger.info("=" * 80)
    logger.info(f"{worker_name.upper()} CONSUMER STOPPED")
    logger.info("=" * 80)
    logger.info(f"Messages handled: {summary['total_operations']}")
    logger.info(f"Acknowledged cleanly: {summary['successful_operations']}")
    logger.info(f"Retained or discarded: {summary['failed_operations']}")
    logger.info(f"Average time per message: {summary['avg_duration'] * 1000:.1f}ms")
    logger.info("=" * 80)


class QueueConsumer:
    """
    Long-polls a queue and feeds each message to a worker.

    Subclasses decide how a received batch of messages is dispatched.
    """

    strategy = "base"

    def __init__(
        self,
        worker: WorkerProtocol,
        sqs_client: SQSClientProtocol,
        queue_url: str,
        config: PipelineConfig,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.worker = worker
        self.sqs_client = sqs_client
        self.queue_url = queue_url
        self.config = config
        self.metrics = metrics if metrics is not None else MetricsCollector()
        self.logger = get_logger(f"album-ingest.consumer.{self.strategy}")

    def handle_and_acknowledge(self, message: Dict[str, Any]) -> bool:
        """Process one message and delete it when it is done with."""
        if not process_message(self.worker, message, self.metrics):
            return False
        return delete_message(self.sqs_client, self.queue_url, message)

    def dispatch(self, messages: List[Dict[str, Any]]) -> List[bool]:
        raise NotImplementedError

    def run(
        self,
        max_polls: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> ConsumerStats:
        """
        Poll until ``max_polls`` polls were made or ``stop_event`` is set.

        Errors raised by ``receive_message`` propagate.
        """
        stats = ConsumerStats()
        stop_event = stop_event or threading.Event()
        self.logger.info(
            f"Consuming {self.queue_url} with the {self.strategy} strategy "
            f"({self.worker.name} worker)"
        )

        try:
            while not stop_event.is_set():
                if max_polls is not None and stats.polls >= max_polls:
                    break
                messages = receive_messages(self.sqs_client, self.queue_url, self.config)
                stats.polls += 1
                if not messages:
                    continue
                self.logger.debug(f"Received {len(messages)} message(s)")
                for acknowledged in self.dispatch(messages):
                    stats.add(acknowledged)
        finally:
            log_metrics_summary(self.metrics, self.worker.name)

        return stats
