"""
Audio fingerprint from a short PCM capture.

A 256-point FFT of the most recent samples, magnitudes mapped from
[-100 dB, -30 dB] onto 0..255, and the first 32 bins rendered as a
comma-separated string.
"""

from __future__ import annotations

import numpy as np

FFT_SIZE = 256
SIGNATURE_BINS = 32
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


def pcm16_to_float(raw: bytes) -> np.ndarray:
    """Little-endian signed 16-bit mono PCM to floats in [-1, 1)."""
    usable = len(raw) - (len(raw) % 2)
    samples = np.frombuffer(raw[:usable], dtype="<i2")
    return samples.astype(np.float64) / 32768.0


def byte_spectrum(samples: np.ndarray, fft_size: int = FFT_SIZE) -> np.ndarray:
    """Blackman-windowed frequency magnitudes scaled to uint8."""
    if samples.size == 0:
        raise ValueError("no audio samples")
    frame = samples[-fft_size:]
    if frame.size < fft_size:
        frame = np.pad(frame, (fft_size - frame.size, 0))
    windowed = frame * np.blackman(fft_size)
    spectrum = np.abs(np.fft.rfft(windowed))[: fft_size // 2] / fft_size
    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(spectrum)
    scaled = (db - MIN_DECIBELS) * (255.0 / (MAX_DECIBELS - MIN_DECIBELS))
    return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)


def audio_signature(raw: bytes, bins: int = SIGNATURE_BINS) -> str:
    """Fingerprint string for a raw PCM16 buffer."""
    spectrum = byte_spectrum(pcm16_to_float(raw))
    return ",".join(str(int(v)) for v in spectrum[:bins])
