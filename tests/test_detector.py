"""
Tests for the three-stage crash detector.
"""

import pytest

from fakes import crash_samples, make_sample
from models.config import DetectorConfig
from sensing.buffer import SampleBuffer
from sensing.detector import (
    REASON_CRASH,
    REASON_INSUFFICIENT_DATA,
    REASON_LOW_G,
    REASON_LOW_ROTATION,
    CrashDetector,
    rotation_change,
)


def buffer_of(samples):
    buffer = SampleBuffer()
    for sample in samples:
        buffer.push(sample)
    return buffer


@pytest.fixture
def detector():
    return CrashDetector(DetectorConfig())


class TestScenarios:
    """End-to-end detector scenarios."""

    def test_high_g_with_large_rotation_is_crash(self, detector):
        """6 samples within 100 ms at 5 g with rotation delta 120 -> crash."""
        report = detector.evaluate(buffer_of(crash_samples(g=5.0, rotation_delta=120.0)))

        assert report.is_crash is True
        assert report.reason == REASON_CRASH
        assert report.window_samples == 6
        assert report.high_g_samples == 6
        assert report.rotation_change == pytest.approx(120.0)

    def test_high_g_with_small_rotation_is_not_crash(self, detector):
        """Same as above with rotation delta 50 -> no crash."""
        report = detector.evaluate(buffer_of(crash_samples(g=5.0, rotation_delta=50.0)))

        assert report.is_crash is False
        assert report.reason == REASON_LOW_ROTATION

    def test_is_crash_matches_report(self, detector):
        buffer = buffer_of(crash_samples())

        assert detector.is_crash(buffer) is True
        assert bool(detector.evaluate(buffer)) is True


class TestInsufficientData:
    """Window population stage."""

    def test_empty_buffer(self, detector):
        report = detector.evaluate(SampleBuffer())

        assert report.is_crash is False
        assert report.reason == REASON_INSUFFICIENT_DATA

    def test_too_few_samples_regardless_of_magnitude(self, detector):
        """4 huge samples are still insufficient data."""
        samples = crash_samples(count=4, g=50.0, rotation_delta=500.0)

        report = detector.evaluate(buffer_of(samples))

        assert report.reason == REASON_INSUFFICIENT_DATA
        assert report.window_samples == 4

    def test_old_samples_outside_window_do_not_count(self, detector):
        """Samples older than the sustained window are ignored."""
        old = crash_samples(count=3, start_ms=0.0)
        recent = crash_samples(count=3, start_ms=1000.0)

        report = detector.evaluate(buffer_of(old + recent))

        assert report.reason == REASON_INSUFFICIENT_DATA
        assert report.window_samples == 3


class TestMagnitudeGate:
    """Strict threshold on acceleration magnitude."""

    def _samples_with_high_g(self, high_count, g=5.0):
        samples = []
        for i in range(6):
            accel = (g, 0.0, 0.0) if i < high_count else (1.0, 0.0, 0.0)
            samples.append(make_sample(i * 20.0, accel=accel, rotation=(i * 24.0, 0.0, 0.0)))
        return samples

    def test_two_high_g_samples_not_enough(self, detector):
        report = detector.evaluate(buffer_of(self._samples_with_high_g(2)))

        assert report.reason == REASON_LOW_G
        assert report.high_g_samples == 2

    def test_three_high_g_samples_enough(self, detector):
        report = detector.evaluate(buffer_of(self._samples_with_high_g(3)))

        assert report.is_crash is True
        assert report.high_g_samples == 3

    def test_magnitude_equal_to_threshold_does_not_qualify(self, detector):
        """Exactly 4.0 is not above the threshold."""
        report = detector.evaluate(buffer_of(crash_samples(g=4.0)))

        assert report.is_crash is False
        assert report.reason == REASON_LOW_G
        assert report.high_g_samples == 0

    def test_magnitude_just_above_threshold_qualifies(self, detector):
        report = detector.evaluate(buffer_of(crash_samples(g=4.0001)))

        assert report.is_crash is True

    def test_magnitude_uses_all_three_axes(self, detector):
        """(3, 3, 0) has magnitude ~4.24 even though no axis exceeds 4."""
        samples = [
            make_sample(i * 20.0, accel=(3.0, 3.0, 0.0), rotation=(i * 24.0, 0.0, 0.0))
            for i in range(6)
        ]

        assert detector.is_crash(buffer_of(samples)) is True


class TestRotationGate:
    """Endpoint rotation change, inclusive threshold."""

    def test_rotation_equal_to_threshold_passes(self, detector):
        report = detector.evaluate(buffer_of(crash_samples(rotation_delta=90.0)))

        assert report.is_crash is True
        assert report.rotation_change == pytest.approx(90.0)

    def test_rotation_just_below_threshold_fails(self, detector):
        report = detector.evaluate(buffer_of(crash_samples(rotation_delta=89.999)))

        assert report.is_crash is False
        assert report.reason == REASON_LOW_ROTATION

    def test_rotation_takes_largest_axis(self):
        samples = [
            make_sample(0.0, rotation=(10.0, 0.0, -20.0)),
            make_sample(50.0, rotation=(300.0, 300.0, 300.0)),
            make_sample(100.0, rotation=(40.0, -30.0, 80.0)),
        ]

        assert rotation_change(samples) == pytest.approx(100.0)

    def test_rotation_compares_endpoints_only(self):
        """An intermediate spike does not count."""
        samples = [
            make_sample(0.0, rotation=(0.0, 0.0, 0.0)),
            make_sample(50.0, rotation=(500.0, 0.0, 0.0)),
            make_sample(100.0, rotation=(10.0, 0.0, 0.0)),
        ]

        assert rotation_change(samples) == pytest.approx(10.0)

    def test_custom_threshold(self):
        detector = CrashDetector(DetectorConfig(rotation_threshold=40.0))

        assert detector.is_crash(buffer_of(crash_samples(rotation_delta=50.0))) is True

    def test_detector_does_not_mutate_buffer(self, detector):
        buffer = buffer_of(crash_samples())

        detector.evaluate(buffer)

        assert len(buffer) == 6
