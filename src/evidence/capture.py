"""
Evidence capture sequence.

1. Sound the capture alert (non-blocking).
2. Wait the grace delay so the operator can point the camera.
3. Acquire image, location and audio fingerprint concurrently on daemon threads.
4. Measure the delay from step 1.
5. Assemble an unsealed TrustPacket with a fresh event ID.

Only the image is mandatory. Location and audio degrade to None/sentinel
values and are logged; an image failure or timeout raises CaptureError.
"""

from __future__ import annotations

import base64
import locale
import logging
import platform
import threading
import time
import uuid
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from camera.base import ImageSource
from errors import CaptureError
from evidence.sources import (
    PATTERN_CAPTURE,
    Alarm,
    AudioSource,
    LocationSource,
    LogAlarm,
    NoAudioSource,
    NoLocationSource,
)
from models.config import CaptureConfig
from models.record import AUDIO_UNAVAILABLE, CaptureMetadata, Evidence, Location, TrustPacket


def generate_event_id(prefix: str = "crashguard") -> str:
    """Time-based prefix plus random suffix; unique per process in practice."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def device_info() -> str:
    lang = locale.getlocale()[0] or "C"
    return f"{platform.system()} {platform.machine()} - {lang}"


def to_data_url(image: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


def run_in_daemon(name: str, fn: Callable[..., Any], *args: Any) -> Future:
    """
    Run fn(*args) on a daemon thread and return its Future.

    An acquisition that hangs past its timeout (a frozen camera read, say) is
    abandoned; daemon threads do not hold up interpreter exit the way
    executor workers do.
    """
    future: Future = Future()

    def runner() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args))
        except BaseException as e:
            future.set_exception(e)

    threading.Thread(target=runner, name=name, daemon=True).start()
    return future


class EvidenceCapturer:
    """Orchestrates one evidence capture; safe to reuse across events."""

    def __init__(
        self,
        image_source: ImageSource,
        location_source: Optional[LocationSource] = None,
        audio_source: Optional[AudioSource] = None,
        alarm: Optional[Alarm] = None,
        config: Optional[CaptureConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.image_source = image_source
        self.location_source = location_source or NoLocationSource()
        self.audio_source = audio_source or NoAudioSource()
        self.alarm = alarm or LogAlarm()
        self.config = config or CaptureConfig()
        self._clock = clock
        self._sleep = sleep

    def capture(self) -> TrustPacket:
        """
        Run the full sequence and return an unsealed packet.

        Raises:
            CaptureError: If the image could not be acquired in time.
        """
        cfg = self.config
        started = self._clock()

        self.alarm.sound(PATTERN_CAPTURE)
        self._sleep(cfg.grace_delay_ms / 1000.0)

        image_future = run_in_daemon("evidence-image", self.image_source.capture)
        location_future = None
        if self.location_source.available:
            location_future = run_in_daemon(
                "evidence-location", self.location_source.current_position, cfg.location_timeout_ms
            )
        audio_future = None
        if self.audio_source.available:
            audio_future = run_in_daemon("evidence-audio", self.audio_source.fingerprint, cfg.audio_duration_ms)

        photo = self._await_image(image_future)
        location = self._await_location(location_future)
        audio = self._await_audio(audio_future)

        capture_delay_ms = int(round((self._clock() - started) * 1000))

        packet = TrustPacket(
            event_id=generate_event_id(cfg.event_id_prefix),
            timestamp=utc_timestamp(),
            location=location,
            evidence=Evidence(
                photo=to_data_url(photo, self.image_source.mime_type),
                audio_signature=audio,
            ),
            metadata=CaptureMetadata(
                agent_info=f"{cfg.agent_info} (Python {platform.python_version()})",
                device_info=device_info(),
                capture_delay_ms=capture_delay_ms,
            ),
        )
        logging.info(
            f"Evidence captured: event={packet.event_id}, delay={capture_delay_ms}ms, "
            f"location={'yes' if location.is_available else 'no'}, "
            f"audio={'yes' if audio != AUDIO_UNAVAILABLE else 'no'}"
        )
        return packet

    def _await_image(self, future: Future) -> bytes:
        timeout_s = self.config.image_timeout_ms / 1000.0
        try:
            image = future.result(timeout=timeout_s)
        except FutureTimeout as e:
            logging.error(f"Image acquisition timed out after {timeout_s:.1f}s")
            raise CaptureError(f"Image acquisition timed out after {timeout_s:.1f}s") from e
        except Exception as e:
            logging.error(f"Image acquisition failed: {e}")
            raise CaptureError(f"Image acquisition failed: {e}") from e
        if not image:
            raise CaptureError("Image acquisition returned no data")
        return image

    def _await_location(self, future: Optional[Future]) -> Location:
        if future is None:
            logging.warning("No location capability; recording null location")
            return Location.unavailable()
        # The source gets the same budget; allow a little slack for the thread hop
        timeout_s = self.config.location_timeout_ms / 1000.0 + 0.5
        try:
            location = future.result(timeout=timeout_s)
        except FutureTimeout:
            logging.warning(f"Location timed out after {self.config.location_timeout_ms:.0f}ms")
            return Location.unavailable()
        except Exception as e:
            logging.warning(f"Location failed: {e}")
            return Location.unavailable()
        if location is None:
            logging.warning("No location fix obtained")
            return Location.unavailable()
        return location

    def _await_audio(self, future: Optional[Future]) -> str:
        if future is None:
            logging.warning("No audio capability; recording sentinel signature")
            return AUDIO_UNAVAILABLE
        timeout_s = self.config.audio_timeout_ms / 1000.0
        try:
            signature = future.result(timeout=timeout_s)
        except FutureTimeout:
            logging.warning(f"Audio fingerprint timed out after {self.config.audio_timeout_ms:.0f}ms")
            return AUDIO_UNAVAILABLE
        except Exception as e:
            logging.warning(f"Audio fingerprint failed: {e}")
            return AUDIO_UNAVAILABLE
        return signature or AUDIO_UNAVAILABLE
