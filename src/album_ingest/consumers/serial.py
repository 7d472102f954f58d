"""Serial consumer - handles received messages one by one."""

from typing import Any, Dict, List

from .common import QueueConsumer


class SerialConsumer(QueueConsumer):
    """
    Handles each received message in the current thread, in order.

    A message is deleted as soon as it is handled, so a transient error on
    one message never holds back the acknowledgement of the others.
    """

    strategy = "serial"

    def dispatch(self, messages: List[Dict[str, Any]]) -> List[bool]:
        results = []

        for message in messages:
            results.append(self.handle_and_acknowledge(message))

        return results
