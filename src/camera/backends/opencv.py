"""
OpenCV still-capture backend.

Supports:
- USB webcams (device_id as int, e.g. 0)
- RTSP/IP cameras (device_id as str URL, e.g. "rtsp://...")

The device is opened per capture and released afterwards so the camera is
not held while the session is only monitoring motion.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from camera.base import ImageSource


class OpenCVImageSource(ImageSource):
    """OpenCV VideoCapture wrapped as a JPEG still source."""

    def __init__(
        self,
        device_id: Union[int, str] = 0,
        resolution: Tuple[int, int] = (1280, 720),
        jpeg_quality: int = 80,
        warmup_frames: int = 3,
        max_retries: int = 2,
        rtsp_transport: str = "tcp",
    ) -> None:
        self.device_id = device_id
        self.resolution = resolution
        self.jpeg_quality = jpeg_quality
        self.warmup_frames = warmup_frames
        self.max_retries = max_retries
        self.rtsp_transport = rtsp_transport

        self._cap: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()
        logging.info(f"Image source configured (backend=opencv, id={device_id}, res={resolution})")

    def _open(self, retry_count: int = 0) -> cv2.VideoCapture:
        if retry_count > 0:
            wait_time = min(0.5 * (2 ** (retry_count - 1)), 2.0)
            logging.info(
                f"Retrying camera open (attempt {retry_count + 1}/{self.max_retries}) after {wait_time}s"
            )
            time.sleep(wait_time)

        if isinstance(self.device_id, str) and (
            self.device_id.startswith("rtsp://") or self.device_id.startswith("rtsps://")
        ):
            os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = f"rtsp_transport;{self.rtsp_transport}"

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            if retry_count < self.max_retries - 1:
                logging.warning(f"Failed to open camera device {self.device_id}, retrying...")
                return self._open(retry_count + 1)
            raise RuntimeError(f"Failed to open camera device {self.device_id} after {self.max_retries} attempts")

        # Only set properties for USB cameras (integers), not IP streams
        if isinstance(self.device_id, int):
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        return cap

    def _read_frame(self, cap: cv2.VideoCapture) -> np.ndarray:
        # Auto-exposure needs a few frames after open
        for _ in range(self.warmup_frames):
            cap.grab()
        ok, frame = cap.read()
        if not ok or frame is None:
            raise RuntimeError(f"Failed to read frame from camera {self.device_id}")
        return frame

    def encode(self, frame: np.ndarray) -> bytes:
        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(self.jpeg_quality)])
        if not ok:
            raise RuntimeError("JPEG encoding failed")
        return buf.tobytes()

    def capture(self) -> bytes:
        with self._lock:
            self._cap = self._open()
            try:
                frame = self._read_frame(self._cap)
            finally:
                self.release()
        h, w = frame.shape[:2]
        data = self.encode(frame)
        logging.info(f"Captured evidence image {w}x{h} ({len(data)} bytes)")
        return data

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logging.debug("Camera released")
