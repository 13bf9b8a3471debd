"""
MotionSource interface for pluggable IMU inputs.

Sources deliver MotionSample objects in arrival order. A source may go quiet
at any time (sensor unplugged, permission revoked); read() then returns None
and the caller keeps running.

Wire format shared by the serial and CSV sources, one sample per line:

    ax,ay,az,alpha,beta,gamma            (stamped with the host monotonic clock)
    t_ms,ax,ay,az,alpha,beta,gamma       (device timestamp in milliseconds)
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

import serial

from models.motion import MotionSample


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def parse_sample_line(line: str, clock: Callable[[], float] = monotonic_ms) -> Optional[MotionSample]:
    """
    Parse one text line into a MotionSample.

    Returns None for blank lines, comments, headers and malformed input.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    parts = [p.strip() for p in line.split(",")]
    try:
        values = [float(p) for p in parts]
    except ValueError:
        return None
    if len(values) == 6:
        values = [clock()] + values
    if len(values) != 7:
        return None
    return MotionSample.from_sequence(values)


class MotionSource(ABC):
    """
    Abstract base class for motion sources.

    Lifecycle:
        1. Create instance
        2. Call open()
        3. Call read() repeatedly (None means nothing available right now)
        4. Call close()

    Can also be used as a context manager and iterated; iteration stops when
    the source is exhausted.
    """

    def __init__(self):
        self._is_open = False
        self._sample_count = 0

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def exhausted(self) -> bool:
        """True when the source will never deliver another sample."""
        return False

    @abstractmethod
    def open(self) -> None:
        """
        Open the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[MotionSample]:
        """Return the next sample, or None if none is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def __enter__(self) -> "MotionSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[MotionSample]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")
        while not self.exhausted:
            sample = self.read()
            if sample is None:
                if self.exhausted:
                    break
                continue
            yield sample


class SerialMotionSource(MotionSource):
    """Reads text IMU lines from a microcontroller over a serial port."""

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        timeout: float = 0.05,
        clock: Callable[[], float] = monotonic_ms,
    ):
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self._clock = clock
        self._serial: Optional[serial.Serial] = None

    def open(self) -> None:
        try:
            self._serial = serial.Serial(self.port, self.baudrate, timeout=self.timeout)
            self._serial.reset_input_buffer()
        except serial.SerialException as e:
            raise RuntimeError(f"Cannot open serial port {self.port}: {e}") from e
        self._is_open = True
        logging.info(f"Motion source connected: {self.port} @ {self.baudrate}")

    def read(self) -> Optional[MotionSample]:
        if self._serial is None:
            return None
        try:
            raw = self._serial.readline()
        except serial.SerialException as e:
            logging.warning(f"Serial read failed on {self.port}: {e}")
            return None
        if not raw:
            return None
        sample = parse_sample_line(raw.decode("ascii", errors="ignore"), self._clock)
        if sample is not None:
            self._sample_count += 1
        return sample

    def close(self) -> None:
        if self._serial is not None:
            try:
                self._serial.close()
            finally:
                self._serial = None
            logging.info("Motion source disconnected")
        self._is_open = False


class CsvMotionSource(MotionSource):
    """
    Replays recorded samples from a CSV file.

    With realtime=True, read() sleeps to honour the recorded spacing between
    device timestamps.
    """

    def __init__(self, path: str, realtime: bool = False, sleep: Callable[[float], None] = time.sleep):
        super().__init__()
        self.path = path
        self.realtime = realtime
        self._sleep = sleep
        self._samples: List[MotionSample] = []
        self._pos = 0

    @property
    def exhausted(self) -> bool:
        return self._is_open and self._pos >= len(self._samples)

    def open(self) -> None:
        try:
            with open(self.path, "r") as f:
                lines = f.readlines()
        except OSError as e:
            raise RuntimeError(f"Cannot open motion replay file {self.path}: {e}") from e

        self._samples = []
        for i, line in enumerate(lines):
            sample = parse_sample_line(line, clock=lambda i=i: float(i) * 20.0)
            if sample is not None:
                self._samples.append(sample)
        self._pos = 0
        self._is_open = True
        logging.info(f"Loaded {len(self._samples)} motion samples from {self.path}")

    def read(self) -> Optional[MotionSample]:
        if not self._is_open or self._pos >= len(self._samples):
            return None
        sample = self._samples[self._pos]
        if self.realtime and self._pos > 0:
            gap_ms = sample.timestamp_ms - self._samples[self._pos - 1].timestamp_ms
            if gap_ms > 0:
                self._sleep(gap_ms / 1000.0)
        self._pos += 1
        self._sample_count += 1
        return sample

    def close(self) -> None:
        self._is_open = False
