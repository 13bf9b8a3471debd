from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    """Session snapshot for status displays (polled by the device UI)."""
    state: str = Field(..., description="armed|confirming|triggered")
    monitoring: bool
    countdown_remaining_ms: Optional[float] = Field(None, description="Milliseconds left to cancel")
    buffer_size: int
    queue_size: int = Field(0, description="Outbound items waiting for connectivity")
    online: bool
    last_event_id: Optional[str] = None
    last_error: Optional[str] = None


class CommandResponse(BaseModel):
    command: str
    accepted: bool = Field(..., description="False if the command channel was full")


class LocationModel(BaseModel):
    lat: Optional[float] = None
    lon: Optional[float] = None
    accuracy: Optional[float] = None


class RecordSummaryResponse(BaseModel):
    """Latest sealed record without the photo payload."""
    event_id: str
    timestamp: str
    location: LocationModel
    capture_delay_ms: int
    digest: Optional[str]
    verified: bool


class VerifyResponse(BaseModel):
    event_id: str
    valid: bool
    digest: Optional[str] = Field(None, description="Digest carried by the record")
    computed_digest: str = Field(..., description="Digest recomputed from the record fields")


class QueueItemModel(BaseModel):
    id: str
    kind: str
    enqueued_at: float
    attempt_count: int


class QueueResponse(BaseModel):
    size: int
    online: bool
    max_attempts: int
    items: List[QueueItemModel] = Field(default_factory=list)


class QueueClearResponse(BaseModel):
    removed: int
