"""
Tests for the evidence capture sequence.
"""

import base64
import re
import threading

import pytest

from errors import CaptureError
from evidence.capture import EvidenceCapturer, generate_event_id, utc_timestamp
from evidence.sources import PATTERN_CAPTURE, LogAlarm, NoAudioSource, NoLocationSource
from fakes import JPEG_BYTES, FakeAudioSource, FakeImageSource, FakeLocationSource
from models.config import CaptureConfig
from models.record import AUDIO_UNAVAILABLE, Location


def make_capturer(image=None, location=None, audio=None, config=None, clock=None):
    sleeps = []
    capturer = EvidenceCapturer(
        image_source=image or FakeImageSource(),
        location_source=location or FakeLocationSource(Location(47.0, 8.0, 5.0)),
        audio_source=audio or FakeAudioSource("1,2,3"),
        alarm=LogAlarm(),
        config=config or CaptureConfig(),
        clock=clock or iter([10.0, 11.042]).__next__,
        sleep=sleeps.append,
    )
    return capturer, sleeps


class TestHelpers:

    def test_event_id_format(self):
        """Prefix, epoch milliseconds and a 9-character random suffix."""
        assert re.fullmatch(r"crashguard_\d{13}_[0-9a-f]{9}", generate_event_id())

    def test_event_ids_unique(self):
        assert len({generate_event_id() for _ in range(1000)}) == 1000

    def test_timestamp_is_utc_iso(self):
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())


class TestCaptureSequence:
    """Happy path."""

    def test_assembles_unsealed_packet(self):
        capturer, _ = make_capturer()

        packet = capturer.capture()

        assert packet.digest is None
        assert packet.location == Location(47.0, 8.0, 5.0)
        assert packet.evidence.audio_signature == "1,2,3"
        assert packet.event_id.startswith("crashguard_")

    def test_photo_is_jpeg_data_url(self):
        capturer, _ = make_capturer()

        photo = capturer.capture().evidence.photo

        prefix = "data:image/jpeg;base64,"
        assert photo.startswith(prefix)
        assert base64.b64decode(photo[len(prefix):]) == JPEG_BYTES

    def test_alarm_then_grace_delay(self):
        """The capture alert sounds and the grace delay is waited before acquiring."""
        capturer, sleeps = make_capturer()

        capturer.capture()

        assert capturer.alarm.history == [PATTERN_CAPTURE]
        assert sleeps == [1.0]

    def test_capture_delay_measured_from_alert(self):
        capturer, _ = make_capturer(clock=iter([10.0, 11.042]).__next__)

        packet = capturer.capture()

        assert packet.metadata.capture_delay_ms == 1042

    def test_collaborators_receive_configured_budgets(self):
        location = FakeLocationSource(Location(1.0, 2.0))
        audio = FakeAudioSource()
        capturer, _ = make_capturer(location=location, audio=audio)

        capturer.capture()

        assert location.timeouts == [5000.0]
        assert audio.durations == [100.0]

    def test_metadata_describes_agent(self):
        capturer, _ = make_capturer()

        metadata = capturer.capture().metadata

        assert metadata.agent_info.startswith("crash-guard/0.1.0 (Python ")
        assert metadata.device_info


class TestDegradedEvidence:
    """Location and audio failures never abort the capture."""

    def test_location_failure_gives_null_location(self):
        capturer, _ = make_capturer(location=FakeLocationSource(error=OSError("gpsd down")))

        packet = capturer.capture()

        assert packet.location == Location(None, None, None)

    def test_no_fix_gives_null_location(self):
        capturer, _ = make_capturer(location=FakeLocationSource(None))

        assert capturer.capture().location.is_available is False

    def test_missing_location_capability(self):
        capturer, _ = make_capturer(location=NoLocationSource())

        assert capturer.capture().location == Location.unavailable()

    def test_audio_failure_gives_sentinel(self):
        capturer, _ = make_capturer(audio=FakeAudioSource(error=RuntimeError("no mic")))

        assert capturer.capture().evidence.audio_signature == AUDIO_UNAVAILABLE

    def test_missing_audio_capability(self):
        capturer, _ = make_capturer(audio=NoAudioSource())

        assert capturer.capture().evidence.audio_signature == "audio_unavailable"

    def test_location_timeout_gives_null_location(self):
        release = threading.Event()

        class SlowLocationSource(FakeLocationSource):
            def current_position(self, timeout_ms):
                release.wait(5)
                return Location(47.3769, 8.5417, 12.0)

        capturer, _ = make_capturer(
            location=SlowLocationSource(),
            config=CaptureConfig(location_timeout_ms=50),
        )
        try:
            packet = capturer.capture()
        finally:
            release.set()

        assert packet.location == Location.unavailable()
        assert packet.evidence.audio_signature == "1,2,3"

    def test_audio_timeout_gives_sentinel(self):
        release = threading.Event()

        class SlowAudioSource(FakeAudioSource):
            def fingerprint(self, duration_ms):
                release.wait(5)
                return "1,2,3"

        capturer, _ = make_capturer(
            audio=SlowAudioSource(),
            config=CaptureConfig(audio_timeout_ms=50),
        )
        try:
            packet = capturer.capture()
        finally:
            release.set()

        assert packet.evidence.audio_signature == AUDIO_UNAVAILABLE
        assert packet.location.is_available


class TestCaptureFatal:
    """Image failures abort the capture."""

    def test_image_error_raises_capture_error(self):
        capturer, _ = make_capturer(image=FakeImageSource(error=RuntimeError("camera unplugged")))

        with pytest.raises(CaptureError, match="camera unplugged"):
            capturer.capture()

    def test_empty_image_raises_capture_error(self):
        capturer, _ = make_capturer(image=FakeImageSource(data=b""))

        with pytest.raises(CaptureError):
            capturer.capture()

    def test_image_timeout_raises_capture_error(self):
        release = threading.Event()

        class HangingImageSource(FakeImageSource):
            def capture(self):
                release.wait(5)
                return JPEG_BYTES

        capturer, _ = make_capturer(
            image=HangingImageSource(),
            config=CaptureConfig(image_timeout_ms=50),
        )
        try:
            with pytest.raises(CaptureError, match="timed out"):
                capturer.capture()
        finally:
            release.set()

    def test_hung_image_thread_does_not_block_exit(self):
        release = threading.Event()
        started = threading.Event()
        seen = {}

        class HangingImageSource(FakeImageSource):
            def capture(self):
                current = threading.current_thread()
                seen["name"] = current.name
                seen["daemon"] = current.daemon
                started.set()
                release.wait(5)
                return JPEG_BYTES

        capturer, _ = make_capturer(
            image=HangingImageSource(),
            config=CaptureConfig(image_timeout_ms=50),
        )
        try:
            with pytest.raises(CaptureError):
                capturer.capture()
            assert started.wait(1)
        finally:
            release.set()

        assert seen == {"name": "evidence-image", "daemon": True}
