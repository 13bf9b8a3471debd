"""
Image source factory + credential helpers.

This is the single entrypoint the rest of the project should use to create
the evidence camera.
"""

from __future__ import annotations

import os
from typing import Any, Dict

import yaml

from .base import ImageSource
from .backends.opencv import OpenCVImageSource


def inject_rtsp_credentials(camera_cfg: Dict[str, Any]) -> None:
    """
    Load RTSP credentials from a secrets file if provided.

    The secrets file (e.g., secrets/camera_secrets.yaml) can contain:
      rtsp_url: "rtsp://192.168.1.100/stream"
      username: "user"
      password: "pass"
    """
    secrets_file = camera_cfg.get("secrets_file")
    if not secrets_file or not os.path.exists(secrets_file):
        return

    with open(secrets_file, "r") as f:
        secrets = yaml.safe_load(f) or {}

    rtsp_url = secrets.get("rtsp_url")
    if rtsp_url:
        camera_cfg["device_id"] = rtsp_url

    device_id = camera_cfg.get("device_id")
    if not isinstance(device_id, str) or not device_id.startswith("rtsp://"):
        return

    username = secrets.get("username")
    password = secrets.get("password")
    if username and password and "@" not in device_id.split("://")[1].split("/")[0]:
        protocol, rest = device_id.split("://", 1)
        camera_cfg["device_id"] = f"{protocol}://{username}:{password}@{rest}"


def create_image_source(camera_cfg: Dict[str, Any]) -> ImageSource:
    inject_rtsp_credentials(camera_cfg)
    return OpenCVImageSource(
        device_id=camera_cfg.get("device_id", 0),
        resolution=tuple(camera_cfg.get("resolution", [1280, 720])),
        jpeg_quality=int(camera_cfg.get("jpeg_quality", 80)),
        warmup_frames=int(camera_cfg.get("warmup_frames", 3)),
        rtsp_transport=camera_cfg.get("rtsp_transport", "tcp"),
    )
