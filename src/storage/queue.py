"""
Durable FIFO of outbound work that survives restarts.

Items are persisted in the queue_items table before enqueue() returns.
Draining hands each item to a handler in enqueue order:

    SUCCESS      -> item removed
    FAILED       -> attempt charged; removed and reported once
                    attempt_count reaches max_attempts
    UNAVAILABLE  -> drain stops; no attempt charged

drain() is never re-entered: a second caller blocks until the first finishes,
so one delivery cannot be attempted twice concurrently.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from models.queue_item import DispatchResult, DrainReport, QueueItem, QueueItemKind
from storage.database import Database

DEFAULT_MAX_ATTEMPTS = 3

DrainHandler = Callable[[QueueItem], DispatchResult]
FailureCallback = Callable[[QueueItem], None]


class DurabilityQueue:
    """SQLite-backed retry queue shared by the dispatch path and drain worker."""

    def __init__(
        self,
        database: Database,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], float] = time.time,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.database = database
        self.max_attempts = max_attempts
        self._clock = clock
        self._lock = threading.Lock()
        self._failure_callbacks: List[FailureCallback] = []

    def on_permanent_failure(self, callback: FailureCallback) -> None:
        """Register a callback for items dropped after max_attempts."""
        self._failure_callbacks.append(callback)

    def enqueue(
        self,
        kind: QueueItemKind,
        payload: Dict[str, Any],
        item_id: Optional[str] = None,
    ) -> QueueItem:
        item = QueueItem(
            id=item_id or uuid.uuid4().hex,
            kind=QueueItemKind(kind),
            payload=payload,
            enqueued_at=self._clock(),
        )
        with self._lock:
            self.database.insert_queue_item(item)
        logging.info(f"Queued {item.kind.value} item {item.id}")
        return item

    def drain(self, handler: DrainHandler) -> DrainReport:
        """
        Attempt delivery of every queued item in enqueue order.

        Handler exceptions count as FAILED for that item.
        """
        report = DrainReport()
        with self._lock:
            for item in self.database.get_queue_items():
                try:
                    result = handler(item)
                except Exception as e:
                    logging.error(f"Queue handler raised for item {item.id}: {e}")
                    result = DispatchResult.FAILED

                if result == DispatchResult.SUCCESS:
                    self.database.delete_queue_item(item.id)
                    report.delivered.append(item.id)
                    logging.info(f"Delivered queued {item.kind.value} item {item.id}")
                    continue

                if result == DispatchResult.UNAVAILABLE:
                    report.interrupted = True
                    logging.info(f"Channel unavailable; drain stopped at item {item.id}")
                    break

                item.attempt_count += 1
                if item.attempt_count >= self.max_attempts:
                    self.database.delete_queue_item(item.id)
                    report.failed.append(item)
                    logging.error(
                        f"Dropping {item.kind.value} item {item.id} after "
                        f"{item.attempt_count} failed attempts"
                    )
                else:
                    self.database.update_queue_attempts(item.id, item.attempt_count)
                    report.retried.append(item.id)
                    logging.warning(
                        f"Delivery of item {item.id} failed "
                        f"(attempt {item.attempt_count}/{self.max_attempts})"
                    )

        for item in report.failed:
            for callback in self._failure_callbacks:
                callback(item)

        if report.processed:
            logging.info(
                f"Drain complete: {len(report.delivered)} delivered, "
                f"{len(report.retried)} retried, {len(report.failed)} dropped"
            )
        return report

    def size(self) -> int:
        return self.database.count_queue_items()

    def items(self) -> List[QueueItem]:
        with self._lock:
            return self.database.get_queue_items()

    def clear(self) -> int:
        with self._lock:
            removed = self.database.clear_queue()
        logging.info(f"Queue cleared ({removed} items removed)")
        return removed
