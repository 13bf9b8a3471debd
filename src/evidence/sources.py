"""
Best-effort evidence collaborators: location, audio and the audible alarm.

Location and audio are optional capabilities. Their failures are absorbed by
the evidence capturer, so implementations raise freely (or return None for
"no fix") and never need to swallow their own errors.
"""

from __future__ import annotations

import json
import logging
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from evidence.fingerprint import audio_signature
from models.record import Location


# -----------------------------------------------------------------------------
# Location
# -----------------------------------------------------------------------------

class LocationSource(ABC):
    """Geolocation provider."""

    available: bool = True

    @abstractmethod
    def current_position(self, timeout_ms: float) -> Optional[Location]:
        """Return the current fix, or None if no fix is obtained in time."""


class NoLocationSource(LocationSource):
    """Stand-in for devices without any location capability."""

    available = False

    def current_position(self, timeout_ms: float) -> Optional[Location]:
        return None


class StaticLocationSource(LocationSource):
    """Fixed position, for installations that do not move."""

    def __init__(self, lat: float, lon: float, accuracy: Optional[float] = None):
        self._location = Location(lat=lat, lon=lon, accuracy=accuracy)

    def current_position(self, timeout_ms: float) -> Optional[Location]:
        return self._location


class GpsdLocationSource(LocationSource):
    """
    Reads a fix from a local gpsd daemon over its JSON socket protocol.

    Waits for the first TPV report with a 2D or better fix. Accuracy is the
    larger of the reported longitude/latitude error estimates (meters).
    """

    WATCH_COMMAND = b'?WATCH={"enable":true,"json":true}\n'

    def __init__(self, host: str = "127.0.0.1", port: int = 2947):
        self.host = host
        self.port = port

    @staticmethod
    def parse_report(report: dict) -> Optional[Location]:
        if report.get("class") != "TPV" or report.get("mode", 0) < 2:
            return None
        if "lat" not in report or "lon" not in report:
            return None
        errors = [report[k] for k in ("epx", "epy") if k in report]
        accuracy = max(errors) if errors else report.get("eph")
        return Location(lat=float(report["lat"]), lon=float(report["lon"]), accuracy=accuracy)

    def current_position(self, timeout_ms: float) -> Optional[Location]:
        deadline = time.monotonic() + timeout_ms / 1000.0
        with socket.create_connection((self.host, self.port), timeout=timeout_ms / 1000.0) as sock:
            sock.sendall(self.WATCH_COMMAND)
            pending = b""
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                sock.settimeout(remaining)
                try:
                    chunk = sock.recv(4096)
                except socket.timeout:
                    return None
                if not chunk:
                    return None
                pending += chunk
                *lines, pending = pending.split(b"\n")
                for line in lines:
                    try:
                        report = json.loads(line)
                    except ValueError:
                        continue
                    location = self.parse_report(report)
                    if location is not None:
                        return location


# -----------------------------------------------------------------------------
# Audio
# -----------------------------------------------------------------------------

class AudioSource(ABC):
    """Short ambient audio capture reduced to a fingerprint string."""

    available: bool = True

    @abstractmethod
    def fingerprint(self, duration_ms: float) -> str:
        """
        Record duration_ms of audio and return its fingerprint.

        Raises:
            RuntimeError: If the microphone cannot be read.
        """


class NoAudioSource(AudioSource):
    """Stand-in for devices without a microphone."""

    available = False

    def fingerprint(self, duration_ms: float) -> str:
        raise RuntimeError("no audio capability")


class ArecordAudioSource(AudioSource):
    """Captures mono PCM16 with ALSA's arecord and fingerprints it."""

    def __init__(self, device: str = "default", sample_rate: int = 16000, timeout_s: float = 2.0):
        self.device = device
        self.sample_rate = sample_rate
        self.timeout_s = timeout_s

    def build_command(self, duration_ms: float) -> List[str]:
        sample_count = max(1, int(self.sample_rate * duration_ms / 1000.0))
        return [
            "arecord",
            "-q",
            "-D", self.device,
            "-f", "S16_LE",
            "-c", "1",
            "-r", str(self.sample_rate),
            "-t", "raw",
            "-s", str(sample_count),
        ]

    def fingerprint(self, duration_ms: float) -> str:
        cmd = self.build_command(duration_ms)
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=self.timeout_s, check=True)
        except FileNotFoundError as e:
            raise RuntimeError("arecord not installed") from e
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode(errors="ignore").strip() if e.stderr else ""
            raise RuntimeError(f"arecord failed: {stderr or e.returncode}") from e
        except subprocess.TimeoutExpired as e:
            raise RuntimeError(f"arecord timed out after {self.timeout_s}s") from e
        if not result.stdout:
            raise RuntimeError("arecord returned no audio")
        return audio_signature(result.stdout)


# -----------------------------------------------------------------------------
# Alarm
# -----------------------------------------------------------------------------

PATTERN_CONFIRMING = "confirming"
PATTERN_CAPTURE = "capture"


class Alarm(ABC):
    """Audible alert. sound() must return immediately."""

    @abstractmethod
    def sound(self, pattern: str) -> None:
        """Start playing the named alert pattern without blocking."""

    def stop(self) -> None:
        """Stop any pattern still playing."""


class LogAlarm(Alarm):
    """Alarm for headless setups: logs instead of playing sound."""

    def __init__(self):
        self.history: List[str] = []

    def sound(self, pattern: str) -> None:
        self.history.append(pattern)
        logging.warning(f"ALERT: {pattern}")


class CommandAlarm(Alarm):
    """
    Plays an alert by spawning an external command (e.g. aplay alarm.wav).

    The pattern name is appended as the final argument so one script can
    play distinct sounds.
    """

    def __init__(self, command: Sequence[str]):
        if not command:
            raise ValueError("alarm command must not be empty")
        self.command = list(command)
        self._proc: Optional[subprocess.Popen] = None

    def sound(self, pattern: str) -> None:
        self.stop()
        try:
            self._proc = subprocess.Popen(
                self.command + [pattern],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logging.error(f"Failed to start alarm command {self.command[0]}: {e}")
            self._proc = None

    def stop(self) -> None:
        if self._proc is not None and self._proc.poll() is None:
            self._proc.terminate()
        self._proc = None


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------

def create_location_source(location_cfg) -> LocationSource:
    """Build the location source from a LocationConfig."""
    backend = location_cfg.backend
    if backend == "gpsd":
        return GpsdLocationSource(host=location_cfg.host, port=location_cfg.port)
    if backend == "static":
        return StaticLocationSource(location_cfg.lat, location_cfg.lon, location_cfg.accuracy)
    return NoLocationSource()


def create_audio_source(audio_cfg, timeout_ms: float) -> AudioSource:
    """Build the audio source from an AudioConfig."""
    if not audio_cfg.enabled:
        return NoAudioSource()
    return ArecordAudioSource(
        device=audio_cfg.device,
        sample_rate=audio_cfg.sample_rate,
        timeout_s=timeout_ms / 1000.0,
    )


def create_alarm(command: Optional[Sequence[str]]) -> Alarm:
    return CommandAlarm(command) if command else LogAlarm()
