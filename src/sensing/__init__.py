"""
Sensing layer: motion sample storage, crash detection and IMU sources.
"""

from .buffer import SampleBuffer, SampleWindow
from .detector import CrashDetector, DetectionReport
from .sources import CsvMotionSource, MotionSource, SerialMotionSource, parse_sample_line

__all__ = [
    "SampleBuffer",
    "SampleWindow",
    "CrashDetector",
    "DetectionReport",
    "MotionSource",
    "SerialMotionSource",
    "CsvMotionSource",
    "parse_sample_line",
]
