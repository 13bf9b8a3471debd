"""
Three-stage crash detector over the motion sample buffer.

Stages, all of which must pass:
1. Window population: the most recent sustained window must hold at least
   min_window_samples samples, otherwise the result is "insufficient data".
2. Magnitude gate: at least min_high_g_samples samples in the window exceed
   high_g_threshold. Requiring several samples inside the fixed window is what
   encodes the sustained-duration check and filters single-sample spikes.
3. Rotation: the largest absolute change of alpha/beta/gamma between the
   first and last sample of the window reaches rotation_threshold. This is an
   endpoint comparison, not an integral of angular rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from models.config import DetectorConfig
from models.motion import MotionSample
from sensing.buffer import SampleBuffer

REASON_CRASH = "crash"
REASON_INSUFFICIENT_DATA = "insufficient_data"
REASON_LOW_G = "below_high_g"
REASON_LOW_ROTATION = "below_rotation"


@dataclass(frozen=True)
class DetectionReport:
    """
    Outcome of one detector evaluation.

    Attributes:
        is_crash: True only when every stage passed.
        reason: Which stage decided the outcome.
        window_samples: Samples inside the sustained window.
        high_g_samples: Samples whose magnitude exceeded the threshold.
        rotation_change: Largest endpoint change across the rotation axes.
    """
    is_crash: bool
    reason: str
    window_samples: int = 0
    high_g_samples: int = 0
    rotation_change: float = 0.0

    def __bool__(self) -> bool:
        return self.is_crash


def rotation_change(samples: List[MotionSample]) -> float:
    """Largest |last - first| over the three angular-rate axes."""
    if len(samples) < 2:
        return 0.0
    first, last = samples[0], samples[-1]
    return max(
        abs(last.rot_alpha - first.rot_alpha),
        abs(last.rot_beta - first.rot_beta),
        abs(last.rot_gamma - first.rot_gamma),
    )


class CrashDetector:
    """Stateless crash classifier; reads the buffer, never mutates it."""

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()

    def evaluate(self, buffer: SampleBuffer) -> DetectionReport:
        cfg = self.config
        samples = list(buffer.window(cfg.sustained_window_ms))

        if len(samples) < cfg.min_window_samples:
            return DetectionReport(False, REASON_INSUFFICIENT_DATA, window_samples=len(samples))

        accel = np.array(
            [(s.accel_x, s.accel_y, s.accel_z) for s in samples],
            dtype=float,
        )
        magnitudes = np.linalg.norm(accel, axis=1)
        high_g = int(np.count_nonzero(magnitudes > cfg.high_g_threshold))

        if high_g < cfg.min_high_g_samples:
            return DetectionReport(
                False, REASON_LOW_G,
                window_samples=len(samples),
                high_g_samples=high_g,
            )

        rotation = rotation_change(samples)
        if rotation < cfg.rotation_threshold:
            return DetectionReport(
                False, REASON_LOW_ROTATION,
                window_samples=len(samples),
                high_g_samples=high_g,
                rotation_change=rotation,
            )

        logging.info(
            f"Crash signature detected: high_g={high_g}, "
            f"rotation_change={rotation:.1f}, window={len(samples)}"
        )
        return DetectionReport(
            True, REASON_CRASH,
            window_samples=len(samples),
            high_g_samples=high_g,
            rotation_change=rotation,
        )

    def is_crash(self, buffer: SampleBuffer) -> bool:
        """Boolean crash-candidate flag for the current buffer contents."""
        return self.evaluate(buffer).is_crash
