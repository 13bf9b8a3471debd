"""
Background drain of the outbound queue.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .connectivity import Connectivity
from .outbox import Outbox


class QueueWorker:
    """
    Periodically checks connectivity and drains the queue while online.

    A check that flips the signal to online already drains through the
    outbox's connectivity subscription; the periodic drain picks up items
    left behind by FAILED attempts that still have budget.
    """

    def __init__(
        self,
        outbox: Outbox,
        connectivity: Connectivity,
        interval_seconds: float = 30.0,
        on_drain: Optional[Callable[[], None]] = None,
    ):
        self.outbox = outbox
        self.connectivity = connectivity
        self.interval_seconds = interval_seconds
        self.on_drain = on_drain
        self.last_drain_time = 0.0
        self._worker_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start_worker_thread(self) -> bool:
        """Start background thread for periodic draining."""
        if self._worker_thread is None or not self._worker_thread.is_alive():
            self._stop_event.clear()
            self._worker_thread = threading.Thread(target=self._worker, name="queue-worker")
            self._worker_thread.daemon = True
            self._worker_thread.start()
            logging.info("Queue worker thread started")
            return True
        return False

    def stop_worker_thread(self) -> None:
        """Stop the background drain thread."""
        self._stop_event.set()
        if self._worker_thread and self._worker_thread.is_alive():
            self._worker_thread.join(timeout=10)
            logging.info("Queue worker thread stopped")

    def run_once(self) -> None:
        """One check-and-drain cycle."""
        online = self.connectivity.check()
        if online and self.outbox.queue.size() > 0:
            self.outbox.drain()
        self.last_drain_time = time.time()
        if self.on_drain is not None:
            self.on_drain()

    def _worker(self) -> None:
        """Background worker loop."""
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logging.error(f"Error in queue worker: {e}")
            self._stop_event.wait(self.interval_seconds)
