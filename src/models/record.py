"""
TrustPacket model: the tamper-evident evidence record.

The wire form uses camelCase keys in a fixed order. That order is part of the
digest contract, so it is defined here once and reused by the sealer.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

AUDIO_UNAVAILABLE = "audio_unavailable"


@dataclass(frozen=True)
class Location:
    """
    Best-effort geolocation. All fields are None when unavailable.

    Attributes:
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
        accuracy: Horizontal accuracy in meters.
    """
    lat: Optional[float] = None
    lon: Optional[float] = None
    accuracy: Optional[float] = None

    @classmethod
    def unavailable(cls) -> "Location":
        return cls()

    @property
    def is_available(self) -> bool:
        return self.lat is not None and self.lon is not None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Location":
        return cls(lat=d.get("lat"), lon=d.get("lon"), accuracy=d.get("accuracy"))

    def to_dict(self) -> Dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "accuracy": self.accuracy}


@dataclass(frozen=True)
class Evidence:
    """Captured sensory evidence."""
    photo: str
    audio_signature: str = AUDIO_UNAVAILABLE

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Evidence":
        return cls(photo=d["photo"], audio_signature=d.get("audioSignature", AUDIO_UNAVAILABLE))

    def to_dict(self) -> Dict[str, Any]:
        return {"photo": self.photo, "audioSignature": self.audio_signature}


@dataclass(frozen=True)
class CaptureMetadata:
    """
    Capture context.

    Attributes:
        agent_info: Software agent that produced the record.
        device_info: Host platform description.
        capture_delay_ms: Time from alert emission to evidence assembled.
    """
    agent_info: str
    device_info: str
    capture_delay_ms: int

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CaptureMetadata":
        return cls(
            agent_info=d.get("agentInfo", ""),
            device_info=d.get("deviceInfo", ""),
            capture_delay_ms=int(d.get("captureDelayMs", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agentInfo": self.agent_info,
            "deviceInfo": self.device_info,
            "captureDelayMs": self.capture_delay_ms,
        }


@dataclass(frozen=True)
class TrustPacket:
    """
    Evidence bundle for one confirmed detection.

    Immutable: sealing returns a new instance with `digest` set. A correction
    to any field requires a new event_id.
    """
    event_id: str
    timestamp: str
    location: Location
    evidence: Evidence
    metadata: CaptureMetadata
    digest: Optional[str] = None

    @property
    def is_sealed(self) -> bool:
        return self.digest is not None

    def with_digest(self, digest: str) -> "TrustPacket":
        return replace(self, digest=digest)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrustPacket":
        """
        Adapter: create from the wire (camelCase) dictionary.

        Raises:
            TypeError: If the digest is present but not a string.
        """
        digest = d.get("digest")
        if digest is not None and not isinstance(digest, str):
            raise TypeError(f"digest must be a string, got {type(digest).__name__}")
        return cls(
            event_id=d["eventId"],
            timestamp=d["timestamp"],
            location=Location.from_dict(d.get("location") or {}),
            evidence=Evidence.from_dict(d["evidence"]),
            metadata=CaptureMetadata.from_dict(d.get("metadata") or {}),
            digest=digest,
        )

    def to_dict(self, include_digest: bool = True) -> Dict[str, Any]:
        """
        Convert to the wire dictionary.

        Key order is fixed; the digest is always last and is omitted when
        include_digest is False or the packet is unsealed.
        """
        d: Dict[str, Any] = {
            "eventId": self.event_id,
            "timestamp": self.timestamp,
            "location": self.location.to_dict(),
            "evidence": self.evidence.to_dict(),
            "metadata": self.metadata.to_dict(),
        }
        if include_digest and self.digest is not None:
            d["digest"] = self.digest
        return d

    def summary(self) -> Dict[str, Any]:
        """Compact view without the photo payload, for logs and alerts."""
        return {
            "eventId": self.event_id,
            "timestamp": self.timestamp,
            "location": self.location.to_dict(),
            "captureDelayMs": self.metadata.capture_delay_ms,
            "digest": self.digest,
        }
