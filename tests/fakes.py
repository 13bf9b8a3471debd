"""
Test doubles and sample builders shared by the test modules.
"""

from typing import List, Optional

from camera.base import ImageSource
from cloud.dispatch import DispatchChannel
from evidence.sources import AudioSource, LocationSource
from models.motion import MotionSample
from models.queue_item import DispatchResult
from models.record import CaptureMetadata, Evidence, Location, TrustPacket

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"


class ManualClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class FakeImageSource(ImageSource):
    def __init__(self, data: bytes = JPEG_BYTES, error: Optional[Exception] = None):
        self.data = data
        self.error = error
        self.calls = 0
        self.released = False

    def capture(self) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.data

    def release(self) -> None:
        self.released = True


class FakeLocationSource(LocationSource):
    def __init__(self, location: Optional[Location] = None, error: Optional[Exception] = None):
        self.location = location
        self.error = error
        self.timeouts: List[float] = []

    def current_position(self, timeout_ms: float) -> Optional[Location]:
        self.timeouts.append(timeout_ms)
        if self.error is not None:
            raise self.error
        return self.location


class FakeAudioSource(AudioSource):
    def __init__(self, signature: str = "12,34,56", error: Optional[Exception] = None):
        self.signature = signature
        self.error = error
        self.durations: List[float] = []

    def fingerprint(self, duration_ms: float) -> str:
        self.durations.append(duration_ms)
        if self.error is not None:
            raise self.error
        return self.signature


class FakeChannel(DispatchChannel):
    """Records every attempt; results can be switched between calls."""

    def __init__(
        self,
        alert_result: DispatchResult = DispatchResult.SUCCESS,
        upload_result: DispatchResult = DispatchResult.SUCCESS,
    ):
        self.alert_result = alert_result
        self.upload_result = upload_result
        self.alerts: List[str] = []
        self.uploads: List[str] = []

    def set_result(self, result: DispatchResult) -> None:
        self.alert_result = result
        self.upload_result = result

    def send_alert(self, packet: TrustPacket) -> DispatchResult:
        self.alerts.append(packet.event_id)
        return self.alert_result

    def upload_record(self, packet: TrustPacket) -> DispatchResult:
        self.uploads.append(packet.event_id)
        return self.upload_result


def make_sample(t_ms: float, accel=(0.0, 0.0, 0.0), rotation=(0.0, 0.0, 0.0)) -> MotionSample:
    ax, ay, az = accel
    alpha, beta, gamma = rotation
    return MotionSample(t_ms, ax, ay, az, alpha, beta, gamma)


def crash_samples(
    count: int = 6,
    start_ms: float = 0.0,
    spacing_ms: float = 20.0,
    g: float = 5.0,
    rotation_delta: float = 120.0,
) -> List[MotionSample]:
    """count samples at constant magnitude g with alpha ramping by rotation_delta."""
    step = rotation_delta / (count - 1) if count > 1 else 0.0
    return [
        make_sample(start_ms + i * spacing_ms, accel=(g, 0.0, 0.0), rotation=(i * step, 0.0, 0.0))
        for i in range(count)
    ]


def make_packet(
    event_id: str = "crashguard_1700000000000_abcdef123",
    location: Optional[Location] = None,
    audio_signature: str = "12,34,56",
) -> TrustPacket:
    """Unsealed packet with deterministic contents."""
    return TrustPacket(
        event_id=event_id,
        timestamp="2024-01-01T12:00:00.000Z",
        location=location or Location(lat=47.3769, lon=8.5417, accuracy=12.0),
        evidence=Evidence(photo="data:image/jpeg;base64,/9j/AA==", audio_signature=audio_signature),
        metadata=CaptureMetadata(
            agent_info="crash-guard/0.1.0 (Python 3.11.0)",
            device_info="Linux aarch64 - en_US",
            capture_delay_ms=1042,
        ),
    )
