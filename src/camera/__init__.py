"""
Evidence camera package.

Canonical imports:
- `from camera.camera import create_image_source`
- `from camera.base import ImageSource`
- `from camera.backends.opencv import OpenCVImageSource` (USB + RTSP)
"""

from .base import ImageSource
from .camera import create_image_source, inject_rtsp_credentials

__all__ = ["ImageSource", "create_image_source", "inject_rtsp_credentials"]
