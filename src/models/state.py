"""
Detection state and session status snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class DetectionState(str, Enum):
    """Monitoring session states."""
    ARMED = "armed"
    CONFIRMING = "confirming"
    TRIGGERED = "triggered"


@dataclass
class SessionStatus:
    """
    Point-in-time view of a monitoring session for status displays.

    Attributes:
        state: Current detection state.
        monitoring: Whether the session has been started.
        countdown_remaining_ms: Milliseconds left in the confirmation window.
        buffer_size: Samples currently held in the motion buffer.
        queue_size: Outbound items waiting for delivery.
        online: Last known connectivity.
        last_event_id: Event ID of the most recent sealed record.
        last_error: Most recent capture or dispatch error message.
    """
    state: DetectionState
    monitoring: bool = False
    countdown_remaining_ms: Optional[float] = None
    buffer_size: int = 0
    queue_size: int = 0
    online: bool = False
    last_event_id: Optional[str] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "monitoring": self.monitoring,
            "countdown_remaining_ms": self.countdown_remaining_ms,
            "buffer_size": self.buffer_size,
            "queue_size": self.queue_size,
            "online": self.online,
            "last_event_id": self.last_event_id,
            "last_error": self.last_error,
        }
