"""Multithreaded consumer - uses a thread pool to handle messages concurrently."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List

from .common import QueueConsumer


class ThreadPoolConsumer(QueueConsumer):
    """
    Handles the messages of one poll on a bounded thread pool.

    Workers share their clients and metadata store across threads: boto3
    clients are thread-safe and every store call opens its own session.
    """

    strategy = "multithread"

    def dispatch(self, messages: List[Dict[str, Any]]) -> List[bool]:
        results: List[bool] = []
        max_workers = min(self.config.concurrency, len(messages))

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="consumer") as executor:
            # Submit all tasks
            future_to_message = {
                executor.submit(self.handle_and_acknowledge, message): message
                for message in messages
            }

            # Collect results as they complete
            for future in as_completed(future_to_message):
                try:
                    results.append(future.result())
                except Exception as e:
                    message = future_to_message[future]
                    self.logger.error(
                        f"[{message.get('MessageId', 'unknown')}] Handler thread failed: {e}",
                        exc_info=True,
                    )
                    results.append(False)

        return results
