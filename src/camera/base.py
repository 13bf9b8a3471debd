"""
Image source interface.

The evidence capturer needs a single still per confirmed detection, so the
contract is one blocking call returning encoded image bytes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ImageSource(ABC):
    """Outward-facing still camera."""

    mime_type: str = "image/jpeg"

    @abstractmethod
    def capture(self) -> bytes:
        """
        Capture one still image.

        Returns:
            Encoded image bytes (JPEG unless mime_type says otherwise).

        Raises:
            RuntimeError: If the camera cannot be opened or read.
        """

    def release(self) -> None:
        """Release any held device handle. Safe to call multiple times."""
