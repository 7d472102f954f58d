"""AsyncIO consumer - uses async/await for concurrent queue I/O."""

import asyncio
import threading
from typing import Any, Dict, List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.factories import AWSClientFactory
from .common import ConsumerStats, QueueConsumer, log_metrics_summary, process_message


class AsyncioConsumer(QueueConsumer):
    """
    Polls and acknowledges through an aioboto3 SQS client.

    Workers are blocking (boto3, SQLAlchemy, Pillow), so each message runs in
    a thread via ``asyncio.to_thread``; a semaphore bounds how many run at
    once. ``sqs_client`` may be an already-open async client; when it is
    None one is opened from the config.
    """

    strategy = "asyncio"

    async def handle_message_async(
        self, sqs_client: Any, semaphore: asyncio.Semaphore, message: Dict[str, Any]
    ) -> bool:
        async with semaphore:
            acknowledge = await asyncio.to_thread(
                process_message, self.worker, message, self.metrics
            )
            if not acknowledge:
                return False
            try:
                await sqs_client.delete_message(
                    QueueUrl=self.queue_url, ReceiptHandle=message["ReceiptHandle"]
                )
            except (ClientError, BotoCoreError) as e:
                self.logger.error(f"[{message.get('MessageId', 'unknown')}] Delete failed: {e}")
                return False
            return True

    async def consume(
        self, sqs_client: Any, max_polls: Optional[int], stop_event: threading.Event
    ) -> ConsumerStats:
        stats = ConsumerStats()
        semaphore = asyncio.Semaphore(self.config.concurrency)

        while not stop_event.is_set():
            if max_polls is not None and stats.polls >= max_polls:
                break
            response = await sqs_client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self.config.max_messages,
                WaitTimeSeconds=self.config.wait_time_seconds,
            )
            stats.polls += 1
            messages: List[Dict[str, Any]] = response.get("Messages", [])
            if not messages:
                continue

            self.logger.debug(f"Received {len(messages)} message(s)")
            tasks = [
                self.handle_message_async(sqs_client, semaphore, message)
                for message in messages
            ]
            results = await asyncio.gather(*tasks, return_exceptions=True)

            for message, result in zip(messages, results):
                if isinstance(result, Exception):
                    self.logger.error(
                        f"[{message.get('MessageId', 'unknown')}] Handler task failed: {result}"
                    )
                    result = False
                stats.add(result)

        return stats

    async def run_async(
        self,
        max_polls: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> ConsumerStats:
        stop_event = stop_event or threading.Event()
        self.logger.info(
            f"Consuming {self.queue_url} with the {self.strategy} strategy "
            f"({self.worker.name} worker)"
        )
        try:
            if self.sqs_client is not None:
                return await self.consume(self.sqs_client, max_polls, stop_event)

            session = aioboto3.Session()
            client_kwargs = AWSClientFactory.client_kwargs(self.config, "sqs")
            async with session.client("sqs", **client_kwargs) as sqs_client:  # type: ignore[reportUnknownMemberType,reportGeneralTypeIssues]
                return await self.consume(sqs_client, max_polls, stop_event)
        finally:
            log_metrics_summary(self.metrics, self.worker.name)

    def run(
        self,
        max_polls: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> ConsumerStats:
        """Synchronous wrapper that runs the async loop."""
        return asyncio.run(self.run_async(max_polls, stop_event))
