"""
Outbox: direct dispatch when online, durable queue otherwise.

Each sealed packet produces two outbound operations, the alert and the
record upload. For each one:

    offline or UNAVAILABLE  -> enqueued, outcome QUEUED
    SUCCESS                 -> outcome SENT
    FAILED                  -> outcome FAILED, failure callbacks notified

Reconnection drains the queue. Items the queue drops after max_attempts are
reported through the same failure callbacks.
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from errors import DispatchError
from models.queue_item import DispatchResult, DrainReport, QueueItem, QueueItemKind
from models.record import TrustPacket
from storage.database import Database
from storage.queue import DurabilityQueue

from .connectivity import Connectivity
from .dispatch import DispatchChannel


class DispatchOutcome(str, Enum):
    SENT = "sent"
    QUEUED = "queued"
    FAILED = "failed"
    SKIPPED = "skipped"


FailureCallback = Callable[[DispatchError], None]


def queue_item_id(kind: QueueItemKind, event_id: str) -> str:
    """One queue slot per operation per event."""
    return f"{kind.value}_{event_id}"


class Outbox:
    """Routes sealed packets to the channel or the durability queue."""

    def __init__(
        self,
        channel: DispatchChannel,
        queue: DurabilityQueue,
        connectivity: Connectivity,
        database: Optional[Database] = None,
    ):
        self.channel = channel
        self.queue = queue
        self.connectivity = connectivity
        self.database = database
        self._failure_callbacks: List[FailureCallback] = []

        queue.on_permanent_failure(self._on_permanent_failure)
        connectivity.subscribe(self._on_connectivity_change)

    def on_failure(self, callback: FailureCallback) -> None:
        """Register a callback for failures that will not be retried."""
        self._failure_callbacks.append(callback)

    def submit(self, packet: TrustPacket) -> Dict[QueueItemKind, DispatchOutcome]:
        """Dispatch the alert, then the record upload, for a sealed packet."""
        if not packet.is_sealed:
            raise ValueError("Only sealed trust packets can be dispatched")
        return {
            QueueItemKind.ALERT_DISPATCH: self._dispatch(QueueItemKind.ALERT_DISPATCH, packet),
            QueueItemKind.RECORD_UPLOAD: self._dispatch(QueueItemKind.RECORD_UPLOAD, packet),
        }

    def drain(self) -> DrainReport:
        return self.queue.drain(self._deliver_item)

    # -------------------------------------------------------------------------

    def _enabled(self, kind: QueueItemKind) -> bool:
        if kind == QueueItemKind.ALERT_DISPATCH:
            return self.channel.alerts_enabled
        return self.channel.uploads_enabled

    def _deliver(self, kind: QueueItemKind, packet: TrustPacket) -> DispatchResult:
        if kind == QueueItemKind.ALERT_DISPATCH:
            result = self.channel.send_alert(packet)
        else:
            result = self.channel.upload_record(packet)
            if result == DispatchResult.SUCCESS and self.database is not None:
                self.database.mark_record_uploaded(packet.event_id)
        return result

    def _dispatch(self, kind: QueueItemKind, packet: TrustPacket) -> DispatchOutcome:
        if not self._enabled(kind):
            logging.warning(f"{kind.value} not configured; skipping for {packet.event_id}")
            return DispatchOutcome.SKIPPED

        if self.connectivity.is_online:
            try:
                result = self._deliver(kind, packet)
            except Exception as e:
                logging.error(f"{kind.value} raised for {packet.event_id}: {e}")
                result = DispatchResult.FAILED

            if result == DispatchResult.SUCCESS:
                return DispatchOutcome.SENT
            if result == DispatchResult.FAILED:
                self._notify(DispatchError(
                    f"{kind.value} failed for {packet.event_id}",
                    item_id=queue_item_id(kind, packet.event_id),
                ))
                return DispatchOutcome.FAILED
            self.connectivity.set_online(False)

        self.queue.enqueue(kind, packet.to_dict(), item_id=queue_item_id(kind, packet.event_id))
        logging.info(f"{kind.value} for {packet.event_id} queued for later delivery")
        return DispatchOutcome.QUEUED

    def _deliver_item(self, item: QueueItem) -> DispatchResult:
        result = self._deliver(item.kind, TrustPacket.from_dict(item.payload))
        if result == DispatchResult.UNAVAILABLE:
            self.connectivity.set_online(False)
        return result

    def _on_connectivity_change(self, online: bool) -> None:
        if online and self.queue.size() > 0:
            logging.info("Connectivity restored; draining queue")
            self.drain()

    def _on_permanent_failure(self, item: QueueItem) -> None:
        self._notify(DispatchError(
            f"{item.kind.value} item {item.id} dropped after {item.attempt_count} attempts",
            item_id=item.id,
        ))

    def _notify(self, error: DispatchError) -> None:
        logging.error(str(error))
        for callback in self._failure_callbacks:
            callback(error)
