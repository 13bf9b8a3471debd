"""
Typed models for the crash guard application.

These models are plain dataclasses with dictionary adapters so they can be
persisted to SQLite, sent over the wire and loaded from YAML.
"""

from .motion import MotionSample
from .state import DetectionState, SessionStatus
from .record import AUDIO_UNAVAILABLE, CaptureMetadata, Evidence, Location, TrustPacket
from .queue_item import DispatchResult, DrainReport, QueueItem, QueueItemKind
from .config import (
    Config,
    SensingConfig,
    DetectorConfig,
    ConfirmationConfig,
    CaptureConfig,
    CameraConfig,
    LocationConfig,
    AudioConfig,
    StorageConfig,
    QueueConfig,
    DispatchConfig,
    GcpConfig,
    WebConfig,
)

__all__ = [
    # Motion
    "MotionSample",
    # State
    "DetectionState",
    "SessionStatus",
    # Record
    "AUDIO_UNAVAILABLE",
    "CaptureMetadata",
    "Evidence",
    "Location",
    "TrustPacket",
    # Queue
    "DispatchResult",
    "DrainReport",
    "QueueItem",
    "QueueItemKind",
    # Config
    "Config",
    "SensingConfig",
    "DetectorConfig",
    "ConfirmationConfig",
    "CaptureConfig",
    "CameraConfig",
    "LocationConfig",
    "AudioConfig",
    "StorageConfig",
    "QueueConfig",
    "DispatchConfig",
    "GcpConfig",
    "WebConfig",
]
