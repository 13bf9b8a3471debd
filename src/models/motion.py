"""
MotionSample model for accelerometer/gyroscope readings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence


@dataclass(frozen=True)
class MotionSample:
    """
    A single fused motion reading.

    Attributes:
        timestamp_ms: Monotonic timestamp in milliseconds.
        accel_x: Linear acceleration on X (m/s², gravity-compensated).
        accel_y: Linear acceleration on Y.
        accel_z: Linear acceleration on Z.
        rot_alpha: Angular rate around Z (deg/s).
        rot_beta: Angular rate around X (deg/s).
        rot_gamma: Angular rate around Y (deg/s).
    """
    timestamp_ms: float
    accel_x: float = 0.0
    accel_y: float = 0.0
    accel_z: float = 0.0
    rot_alpha: float = 0.0
    rot_beta: float = 0.0
    rot_gamma: float = 0.0

    @property
    def magnitude(self) -> float:
        """Euclidean norm of the acceleration vector."""
        return math.sqrt(self.accel_x ** 2 + self.accel_y ** 2 + self.accel_z ** 2)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "MotionSample":
        """Adapter: build from (t_ms, ax, ay, az, alpha, beta, gamma)."""
        if len(values) != 7:
            raise ValueError(f"Expected 7 values, got {len(values)}")
        t, ax, ay, az, alpha, beta, gamma = (float(v) for v in values)
        return cls(
            timestamp_ms=t,
            accel_x=ax,
            accel_y=ay,
            accel_z=az,
            rot_alpha=alpha,
            rot_beta=beta,
            rot_gamma=gamma,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "accel_x": self.accel_x,
            "accel_y": self.accel_y,
            "accel_z": self.accel_z,
            "rot_alpha": self.rot_alpha,
            "rot_beta": self.rot_beta,
            "rot_gamma": self.rot_gamma,
        }
