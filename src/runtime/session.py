"""
Monitoring session: the ARMED / CONFIRMING / TRIGGERED state machine.

    ARMED       --detection | manual_trigger-->  CONFIRMING
    CONFIRMING  --cancel-->                      ARMED       (buffer cleared)
    CONFIRMING  --countdown elapsed | confirm--> TRIGGERED
    TRIGGERED   --reset-->                       ARMED       (buffer cleared)

Entering TRIGGERED runs the evidence capture to completion, seals and
persists the record and hands it to the outbox. A capture failure returns the
session to ARMED and re-raises the CaptureError to the caller.

All methods are meant to be called from one thread (the main loop). Requests
that do not apply to the current state are logged and return False.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, List, Optional

from errors import CaptureError, DispatchError
from evidence.capture import EvidenceCapturer
from evidence.sealer import seal_record
from evidence.sources import PATTERN_CONFIRMING, Alarm, LogAlarm
from models.motion import MotionSample
from models.record import TrustPacket
from models.state import DetectionState, SessionStatus
from sensing.buffer import DEFAULT_CAPACITY, SampleBuffer
from sensing.detector import CrashDetector, DetectionReport
from sensing.sources import monotonic_ms

DEFAULT_COUNTDOWN_MS = 5000.0

StateListener = Callable[[DetectionState, DetectionState], None]


@dataclass(frozen=True)
class Capabilities:
    """Optional evidence capabilities, determined once when monitoring starts."""
    camera: bool
    location: bool
    audio: bool


def check_capabilities(capturer: EvidenceCapturer) -> Capabilities:
    caps = Capabilities(
        camera=capturer.image_source is not None,
        location=capturer.location_source.available,
        audio=capturer.audio_source.available,
    )
    if not caps.location:
        logging.warning("No location capability; records will carry a null location")
    if not caps.audio:
        logging.warning("No audio capability; records will carry no audio signature")
    return caps


class MonitoringSession:
    """Owns the sample buffer, the detection state and one capture at a time."""

    def __init__(
        self,
        detector: CrashDetector,
        capturer: EvidenceCapturer,
        database=None,
        outbox=None,
        alarm: Optional[Alarm] = None,
        buffer: Optional[SampleBuffer] = None,
        countdown_ms: float = DEFAULT_COUNTDOWN_MS,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.detector = detector
        self.capturer = capturer
        self.database = database
        self.outbox = outbox
        self.alarm = alarm or LogAlarm()
        self.buffer = buffer if buffer is not None else SampleBuffer(DEFAULT_CAPACITY)
        self.countdown_ms = countdown_ms
        self._clock = clock

        self._state = DetectionState.ARMED
        self._monitoring = False
        self._confirming_since: Optional[float] = None
        self._listeners: List[StateListener] = []

        self.capabilities: Optional[Capabilities] = None
        self.last_packet: Optional[TrustPacket] = None
        self.last_error: Optional[str] = None

        if outbox is not None:
            outbox.on_failure(self._on_dispatch_failure)

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def monitoring(self) -> bool:
        return self._monitoring

    @property
    def last_event_id(self) -> Optional[str]:
        return self.last_packet.event_id if self.last_packet else None

    def add_listener(self, listener: StateListener) -> None:
        """Register listener(old_state, new_state), called on every transition."""
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._monitoring:
            return
        if self.capabilities is None:
            self.capabilities = check_capabilities(self.capturer)
        self._monitoring = True
        logging.info(f"Monitoring started (state={self._state.value})")

        if self.outbox is not None and self.outbox.connectivity.is_online:
            self.outbox.drain()

    def stop(self) -> None:
        if not self._monitoring:
            return
        self._monitoring = False
        self.alarm.stop()
        self.buffer.clear()
        if self._state == DetectionState.CONFIRMING:
            # A pending countdown must not fire a capture after teardown
            self._confirming_since = None
            self._set_state(DetectionState.ARMED)
        logging.info("Monitoring stopped")

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on_sample(self, sample: MotionSample) -> Optional[DetectionReport]:
        """
        Buffer a sample and evaluate the detector.

        Samples arriving while not monitoring or outside ARMED are dropped.
        """
        if not self._monitoring or self._state != DetectionState.ARMED:
            return None
        self.buffer.push(sample)
        report = self.detector.evaluate(self.buffer)
        if report.is_crash:
            self._enter_confirming("crash detected")
        return report

    def manual_trigger(self) -> bool:
        if not self._monitoring or self._state != DetectionState.ARMED:
            logging.warning(f"Manual trigger ignored in state {self._state.value}")
            return False
        self._enter_confirming("manual trigger")
        return True

    def cancel(self) -> bool:
        if self._state != DetectionState.CONFIRMING:
            logging.warning(f"Cancel ignored in state {self._state.value}")
            return False
        self._confirming_since = None
        self.alarm.stop()
        self.buffer.clear()
        self._set_state(DetectionState.ARMED)
        return True

    def confirm(self) -> bool:
        """
        Skip the rest of the countdown.

        Raises:
            CaptureError: If evidence capture fails.
        """
        if self._state != DetectionState.CONFIRMING:
            logging.warning(f"Confirm ignored in state {self._state.value}")
            return False
        self._trigger()
        return True

    def tick(self) -> bool:
        """
        Advance the countdown; returns True when it triggered.

        Raises:
            CaptureError: If evidence capture fails.
        """
        if not self._monitoring:
            return False
        if self._state != DetectionState.CONFIRMING or self._confirming_since is None:
            return False
        if self._clock() < self._confirming_since + self.countdown_ms:
            return False
        self._trigger()
        return True

    def reset(self) -> bool:
        if self._state != DetectionState.TRIGGERED:
            logging.warning(f"Reset ignored in state {self._state.value}")
            return False
        self.buffer.clear()
        self._set_state(DetectionState.ARMED)
        return True

    def countdown_remaining_ms(self) -> Optional[float]:
        if self._state != DetectionState.CONFIRMING or self._confirming_since is None:
            return None
        return max(0.0, self._confirming_since + self.countdown_ms - self._clock())

    def status(self) -> SessionStatus:
        queue_size = 0
        online = False
        if self.outbox is not None:
            queue_size = self.outbox.queue.size()
            online = self.outbox.connectivity.is_online
        return SessionStatus(
            state=self._state,
            monitoring=self._monitoring,
            countdown_remaining_ms=self.countdown_remaining_ms(),
            buffer_size=len(self.buffer),
            queue_size=queue_size,
            online=online,
            last_event_id=self.last_event_id,
            last_error=self.last_error,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _set_state(self, new_state: DetectionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logging.info(f"State: {old_state.value} -> {new_state.value}")
        for listener in list(self._listeners):
            listener(old_state, new_state)

    def _enter_confirming(self, cause: str) -> None:
        self._confirming_since = self._clock()
        logging.warning(f"Confirmation countdown started ({cause}), {self.countdown_ms:.0f}ms to cancel")
        self.alarm.sound(PATTERN_CONFIRMING)
        self._set_state(DetectionState.CONFIRMING)

    def _trigger(self) -> TrustPacket:
        self._confirming_since = None
        self.alarm.stop()
        self._set_state(DetectionState.TRIGGERED)

        try:
            packet = self.capturer.capture()
        except CaptureError as e:
            self.last_error = str(e)
            logging.error(f"Capture failed, re-arming: {e}")
            self.buffer.clear()
            self._set_state(DetectionState.ARMED)
            raise

        sealed = seal_record(packet)
        self.last_packet = sealed
        self.last_error = None
        if self.database is not None:
            try:
                self.database.save_record(sealed)
            except sqlite3.Error as e:
                # Dispatch proceeds without the local copy
                self.last_error = f"Failed to persist trust packet {sealed.event_id}: {e}"
                logging.error(self.last_error)
        logging.info(f"Trust packet sealed: {sealed.event_id} digest={sealed.digest}")

        if self.outbox is not None:
            outcomes = self.outbox.submit(sealed)
            summary = ", ".join(f"{kind.value}={outcome.value}" for kind, outcome in outcomes.items())
            logging.info(f"Dispatch for {sealed.event_id}: {summary}")
        return sealed

    def _on_dispatch_failure(self, error: DispatchError) -> None:
        self.last_error = str(error)
