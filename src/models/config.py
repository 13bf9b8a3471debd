"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class SensingConfig:
    """Motion source and buffer configuration."""
    source: str = "serial"
    port: str = "/dev/ttyUSB0"
    baudrate: int = 115200
    csv_path: Optional[str] = None
    buffer_capacity: int = 100
    sample_rate_hz: int = 50

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SensingConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            source=d.get("source", "serial"),
            port=d.get("port", "/dev/ttyUSB0"),
            baudrate=d.get("baudrate", 115200),
            csv_path=d.get("csv_path"),
            buffer_capacity=d.get("buffer_capacity", 100),
            sample_rate_hz=d.get("sample_rate_hz", 50),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "port": self.port,
            "baudrate": self.baudrate,
            "csv_path": self.csv_path,
            "buffer_capacity": self.buffer_capacity,
            "sample_rate_hz": self.sample_rate_hz,
        }


@dataclass
class DetectorConfig:
    """
    Crash detector thresholds.

    A sample qualifies as high-G when its magnitude is strictly greater than
    high_g_threshold. Rotation passes when the endpoint change is greater
    than or equal to rotation_threshold.
    """
    sustained_window_ms: float = 100.0
    high_g_threshold: float = 4.0
    min_high_g_samples: int = 3
    min_window_samples: int = 5
    rotation_threshold: float = 90.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            sustained_window_ms=d.get("sustained_window_ms", 100.0),
            high_g_threshold=d.get("high_g_threshold", 4.0),
            min_high_g_samples=d.get("min_high_g_samples", 3),
            min_window_samples=d.get("min_window_samples", 5),
            rotation_threshold=d.get("rotation_threshold", 90.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sustained_window_ms": self.sustained_window_ms,
            "high_g_threshold": self.high_g_threshold,
            "min_high_g_samples": self.min_high_g_samples,
            "min_window_samples": self.min_window_samples,
            "rotation_threshold": self.rotation_threshold,
        }


@dataclass
class ConfirmationConfig:
    """Human-override window configuration."""
    countdown_ms: float = 5000.0
    alarm_command: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ConfirmationConfig":
        return cls(
            countdown_ms=d.get("countdown_ms", 5000.0),
            alarm_command=d.get("alarm_command"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"countdown_ms": self.countdown_ms}
        if self.alarm_command is not None:
            d["alarm_command"] = self.alarm_command
        return d


@dataclass
class CameraConfig:
    """Evidence camera configuration."""
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    jpeg_quality: int = 80
    warmup_frames: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        return cls(
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            jpeg_quality=d.get("jpeg_quality", 80),
            warmup_frames=d.get("warmup_frames", 3),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "resolution": self.resolution,
            "jpeg_quality": self.jpeg_quality,
            "warmup_frames": self.warmup_frames,
        }


@dataclass
class LocationConfig:
    """Location source configuration (gpsd, static or none)."""
    backend: str = "gpsd"
    host: str = "127.0.0.1"
    port: int = 2947
    lat: Optional[float] = None
    lon: Optional[float] = None
    accuracy: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LocationConfig":
        return cls(
            backend=d.get("backend", "gpsd"),
            host=d.get("host", "127.0.0.1"),
            port=d.get("port", 2947),
            lat=d.get("lat"),
            lon=d.get("lon"),
            accuracy=d.get("accuracy"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "host": self.host,
            "port": self.port,
            "lat": self.lat,
            "lon": self.lon,
            "accuracy": self.accuracy,
        }


@dataclass
class AudioConfig:
    """Microphone configuration for the audio fingerprint."""
    enabled: bool = True
    device: str = "default"
    sample_rate: int = 16000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AudioConfig":
        return cls(
            enabled=d.get("enabled", True),
            device=d.get("device", "default"),
            sample_rate=d.get("sample_rate", 16000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "device": self.device,
            "sample_rate": self.sample_rate,
        }


@dataclass
class CaptureConfig:
    """Evidence capture timing and identity."""
    grace_delay_ms: float = 1000.0
    image_timeout_ms: float = 10000.0
    location_timeout_ms: float = 5000.0
    audio_duration_ms: float = 100.0
    audio_timeout_ms: float = 2000.0
    event_id_prefix: str = "crashguard"
    agent_info: str = "crash-guard/0.1.0"
    camera: CameraConfig = field(default_factory=CameraConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CaptureConfig":
        return cls(
            grace_delay_ms=d.get("grace_delay_ms", 1000.0),
            image_timeout_ms=d.get("image_timeout_ms", 10000.0),
            location_timeout_ms=d.get("location_timeout_ms", 5000.0),
            audio_duration_ms=d.get("audio_duration_ms", 100.0),
            audio_timeout_ms=d.get("audio_timeout_ms", 2000.0),
            event_id_prefix=d.get("event_id_prefix", "crashguard"),
            agent_info=d.get("agent_info", "crash-guard/0.1.0"),
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            location=LocationConfig.from_dict(d.get("location") or {}),
            audio=AudioConfig.from_dict(d.get("audio") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grace_delay_ms": self.grace_delay_ms,
            "image_timeout_ms": self.image_timeout_ms,
            "location_timeout_ms": self.location_timeout_ms,
            "audio_duration_ms": self.audio_duration_ms,
            "audio_timeout_ms": self.audio_timeout_ms,
            "event_id_prefix": self.event_id_prefix,
            "agent_info": self.agent_info,
            "camera": self.camera.to_dict(),
            "location": self.location.to_dict(),
            "audio": self.audio.to_dict(),
        }


@dataclass
class StorageConfig:
    """Storage configuration."""
    local_database_path: str = "data/crash_guard.sqlite"
    retention_days: int = 30

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/crash_guard.sqlite"),
            retention_days=d.get("retention_days", 30),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_database_path": self.local_database_path,
            "retention_days": self.retention_days,
        }


@dataclass
class QueueConfig:
    """Durability queue retry policy."""
    max_attempts: int = 3
    drain_interval_seconds: float = 30.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QueueConfig":
        return cls(
            max_attempts=d.get("max_attempts", 3),
            drain_interval_seconds=d.get("drain_interval_seconds", 30.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "drain_interval_seconds": self.drain_interval_seconds,
        }


@dataclass
class GcpConfig:
    """GCS upload target for sealed records."""
    project_id: str = ""
    credentials_file: str = ""
    bucket_name: str = ""
    records_folder: str = "trust_packets"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GcpConfig":
        return cls(
            project_id=d.get("project_id", ""),
            credentials_file=d.get("credentials_file", ""),
            bucket_name=d.get("bucket_name", ""),
            records_folder=d.get("records_folder", "trust_packets"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "credentials_file": self.credentials_file,
            "bucket_name": self.bucket_name,
            "records_folder": self.records_folder,
        }


@dataclass
class DispatchConfig:
    """Outbound alert/upload configuration."""
    alert_webhook_url: Optional[str] = None
    alert_timeout_seconds: float = 10.0
    alert_message: str = (
        "Emergency detected by the crash detection system. "
        "Immediate assistance may be required."
    )
    connectivity_url: str = "https://www.google.com/generate_204"
    connectivity_timeout_seconds: float = 3.0
    gcp: Optional[GcpConfig] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DispatchConfig":
        gcp_dict = d.get("gcp")
        return cls(
            alert_webhook_url=d.get("alert_webhook_url"),
            alert_timeout_seconds=d.get("alert_timeout_seconds", 10.0),
            alert_message=d.get("alert_message", cls.alert_message),
            connectivity_url=d.get("connectivity_url", "https://www.google.com/generate_204"),
            connectivity_timeout_seconds=d.get("connectivity_timeout_seconds", 3.0),
            gcp=GcpConfig.from_dict(gcp_dict) if gcp_dict else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "alert_webhook_url": self.alert_webhook_url,
            "alert_timeout_seconds": self.alert_timeout_seconds,
            "alert_message": self.alert_message,
            "connectivity_url": self.connectivity_url,
            "connectivity_timeout_seconds": self.connectivity_timeout_seconds,
        }
        if self.gcp:
            d["gcp"] = self.gcp.to_dict()
        return d


@dataclass
class WebConfig:
    """Control/status API configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    sensing: SensingConfig = field(default_factory=SensingConfig)
    detection: DetectorConfig = field(default_factory=DetectorConfig)
    confirmation: ConfirmationConfig = field(default_factory=ConfirmationConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/crash_guard.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            sensing=SensingConfig.from_dict(d.get("sensing") or {}),
            detection=DetectorConfig.from_dict(d.get("detection") or {}),
            confirmation=ConfirmationConfig.from_dict(d.get("confirmation") or {}),
            capture=CaptureConfig.from_dict(d.get("capture") or {}),
            storage=StorageConfig.from_dict(d.get("storage") or {}),
            queue=QueueConfig.from_dict(d.get("queue") or {}),
            dispatch=DispatchConfig.from_dict(d.get("dispatch") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            log_path=d.get("log_path", "logs/crash_guard.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "sensing": self.sensing.to_dict(),
            "detection": self.detection.to_dict(),
            "confirmation": self.confirmation.to_dict(),
            "capture": self.capture.to_dict(),
            "storage": self.storage.to_dict(),
            "queue": self.queue.to_dict(),
            "dispatch": self.dispatch.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
