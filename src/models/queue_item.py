"""
Outbound work item model for the durability queue.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class QueueItemKind(str, Enum):
    """Outbound operations that can be deferred."""
    ALERT_DISPATCH = "alert_dispatch"
    RECORD_UPLOAD = "record_upload"


class DispatchResult(str, Enum):
    """
    Result of a single dispatch attempt.

    UNAVAILABLE means the channel could not be reached at all and the item
    should wait for connectivity; FAILED means the channel answered and
    rejected the request.
    """
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass
class QueueItem:
    """
    A persisted outbound item.

    Attributes:
        id: Unique item ID.
        kind: Which dispatch operation delivers this item.
        payload: Opaque JSON-serializable data for the dispatch operation.
        enqueued_at: Unix timestamp when the item was enqueued.
        attempt_count: Failed delivery attempts so far.
    """
    id: str
    kind: QueueItemKind
    payload: Dict[str, Any]
    enqueued_at: float
    attempt_count: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "QueueItem":
        """Adapter: build from a queue_items row."""
        return cls(
            id=row["id"],
            kind=QueueItemKind(row["kind"]),
            payload=json.loads(row["payload"]),
            enqueued_at=row["enqueued_at"],
            attempt_count=row["attempt_count"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at,
            "attempt_count": self.attempt_count,
        }


@dataclass
class DrainReport:
    """Outcome of one drain pass."""
    delivered: List[str] = field(default_factory=list)
    retried: List[str] = field(default_factory=list)
    failed: List[QueueItem] = field(default_factory=list)
    interrupted: bool = False

    @property
    def processed(self) -> int:
        return len(self.delivered) + len(self.retried) + len(self.failed)
