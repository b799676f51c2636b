import threading
from queue import Queue, Empty
from typing import Optional

from models import Transaction


class InMemoryQueue:
    """
    Thread-safe FIFO feeding one worker.
    Messages come out in the order they were published.
    """

    DEFAULT_TIMEOUT = 0.1

    def __init__(self):
        self._queue: Queue[Transaction] = Queue()
        self._shutdown_event = threading.Event()

    def publish_message(self, message: Transaction) -> None:
        """Add message to the queue. Thread-safe."""
        self._queue.put(message)

    def consume_message(self, timeout: float = DEFAULT_TIMEOUT) -> Optional[Transaction]:
        """
        Get the next message.
        Returns None if the queue is still empty after timeout.
        """
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def is_empty(self) -> bool:
        return self._queue.empty()

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()

    def is_drained(self) -> bool:
        """True once shutdown was signaled and every message has been consumed."""
        return self.is_shutdown() and self.is_empty()
