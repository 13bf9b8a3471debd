"""
Tests for motion sources, evidence collaborators and the audio fingerprint.
"""

import subprocess
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import serial

from evidence.fingerprint import FFT_SIZE, audio_signature, byte_spectrum, pcm16_to_float
from evidence.sources import (
    ArecordAudioSource,
    CommandAlarm,
    GpsdLocationSource,
    LogAlarm,
    NoAudioSource,
    NoLocationSource,
    StaticLocationSource,
    create_alarm,
    create_audio_source,
    create_location_source,
)
from models.config import AudioConfig, LocationConfig
from models.record import Location
from sensing.sources import CsvMotionSource, SerialMotionSource, parse_sample_line


class TestParseSampleLine:

    def test_seven_fields_use_device_timestamp(self):
        sample = parse_sample_line("120,0.1,0.2,9.8,10,20,30")

        assert sample.timestamp_ms == 120
        assert sample.accel_z == 9.8
        assert sample.rot_gamma == 30

    def test_six_fields_stamped_by_clock(self):
        sample = parse_sample_line("0.1,0.2,9.8,10,20,30", clock=lambda: 555.0)

        assert sample.timestamp_ms == 555.0
        assert sample.accel_x == 0.1

    @pytest.mark.parametrize("line", ["", "   ", "# header", "t,ax,ay,az,a,b,g", "1,2,3", "1,2,3,4,5,6,7,8"])
    def test_rejects_non_samples(self, line):
        assert parse_sample_line(line) is None


class TestCsvMotionSource:

    def test_replays_in_order(self, tmp_path):
        path = tmp_path / "crash.csv"
        path.write_text("# recorded\n0,0,0,1,0,0,0\n20,5,0,0,0,0,0\n40,5,0,0,45,0,0\n")
        source = CsvMotionSource(str(path))

        with source:
            samples = list(source)

        assert [s.timestamp_ms for s in samples] == [0, 20, 40]
        assert source.sample_count == 3

    def test_exhausted_after_last_sample(self, tmp_path):
        path = tmp_path / "one.csv"
        path.write_text("0,0,0,1,0,0,0\n")
        source = CsvMotionSource(str(path))
        source.open()

        assert source.exhausted is False
        source.read()
        assert source.exhausted is True
        assert source.read() is None

    def test_realtime_sleeps_recorded_gap(self, tmp_path):
        path = tmp_path / "gap.csv"
        path.write_text("0,0,0,1,0,0,0\n250,0,0,1,0,0,0\n")
        sleeps = []
        source = CsvMotionSource(str(path), realtime=True, sleep=sleeps.append)
        source.open()

        source.read()
        source.read()

        assert sleeps == [0.25]

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError):
            CsvMotionSource(str(tmp_path / "missing.csv")).open()


class TestSerialMotionSource:

    @patch("sensing.sources.serial.Serial")
    def test_reads_lines(self, mock_serial):
        port = mock_serial.return_value
        port.readline.side_effect = [b"10,0,0,9.8,0,0,0\r\n", b"", b"garbage\n"]
        source = SerialMotionSource("/dev/ttyUSB0", clock=lambda: 0.0)
        source.open()

        first = source.read()

        assert first.timestamp_ms == 10
        assert source.read() is None
        assert source.read() is None
        assert source.sample_count == 1
        mock_serial.assert_called_once_with("/dev/ttyUSB0", 115200, timeout=0.05)

    @patch("sensing.sources.serial.Serial")
    def test_open_failure(self, mock_serial):
        mock_serial.side_effect = serial.SerialException("no such port")

        with pytest.raises(RuntimeError, match="/dev/ttyUSB9"):
            SerialMotionSource("/dev/ttyUSB9").open()

    @patch("sensing.sources.serial.Serial")
    def test_read_error_is_quiet(self, mock_serial):
        mock_serial.return_value.readline.side_effect = serial.SerialException("unplugged")
        source = SerialMotionSource("/dev/ttyUSB0")
        source.open()

        assert source.read() is None

    @patch("sensing.sources.serial.Serial")
    def test_close_idempotent(self, mock_serial):
        source = SerialMotionSource("/dev/ttyUSB0")
        source.open()

        source.close()
        source.close()

        mock_serial.return_value.close.assert_called_once()
        assert source.is_open is False


class TestGpsd:

    def test_parses_tpv_fix(self):
        report = {"class": "TPV", "mode": 3, "lat": 47.1, "lon": 8.2, "epx": 4.0, "epy": 6.5}

        assert GpsdLocationSource.parse_report(report) == Location(47.1, 8.2, 6.5)

    def test_falls_back_to_eph(self):
        report = {"class": "TPV", "mode": 2, "lat": 1.0, "lon": 2.0, "eph": 9.0}

        assert GpsdLocationSource.parse_report(report).accuracy == 9.0

    @pytest.mark.parametrize("report", [
        {"class": "SKY"},
        {"class": "TPV", "mode": 1, "lat": 1.0, "lon": 2.0},
        {"class": "TPV", "mode": 3},
    ])
    def test_ignores_non_fixes(self, report):
        assert GpsdLocationSource.parse_report(report) is None


class TestArecord:

    def test_command(self):
        source = ArecordAudioSource(device="hw:1", sample_rate=16000)

        cmd = source.build_command(100)

        assert cmd[0] == "arecord"
        assert cmd[cmd.index("-D") + 1] == "hw:1"
        assert cmd[cmd.index("-s") + 1] == "1600"

    @patch("evidence.sources.subprocess.run")
    def test_fingerprints_stdout(self, mock_run):
        mock_run.return_value = MagicMock(stdout=b"\x00\x10" * 1600)

        signature = ArecordAudioSource().fingerprint(100)

        assert len(signature.split(",")) == 32

    @patch("evidence.sources.subprocess.run")
    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(RuntimeError, match="not installed"):
            ArecordAudioSource().fingerprint(100)

    @patch("evidence.sources.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="arecord", timeout=2.0)

        with pytest.raises(RuntimeError, match="timed out"):
            ArecordAudioSource().fingerprint(100)


class TestFingerprint:

    def test_pcm_conversion(self):
        raw = np.array([0, 16384, -32768], dtype="<i2").tobytes()

        assert pcm16_to_float(raw).tolist() == [0.0, 0.5, -1.0]

    def test_odd_length_buffer(self):
        assert pcm16_to_float(b"\x00\x40\x01").tolist() == [0.5]

    def test_silence_is_all_zero(self):
        assert audio_signature(b"\x00\x00" * FFT_SIZE) == ",".join(["0"] * 32)

    def test_tone_peaks_in_expected_bin(self):
        """A tone at bin 8 of a 256-point FFT saturates that bin only."""
        t = np.arange(FFT_SIZE)
        tone = (0.5 * np.sin(2 * np.pi * 8 * t / FFT_SIZE) * 32767).astype("<i2").tobytes()

        values = [int(v) for v in audio_signature(tone).split(",")]

        assert values[8] == 255
        assert max(values[12:]) < 255

    def test_short_buffer_is_padded(self):
        assert byte_spectrum(np.ones(10) * 0.1).shape == (FFT_SIZE // 2,)

    def test_empty_buffer_rejected(self):
        with pytest.raises(ValueError):
            audio_signature(b"")


class TestFactories:

    def test_location_backends(self):
        assert isinstance(create_location_source(LocationConfig(backend="gpsd")), GpsdLocationSource)
        assert isinstance(create_location_source(LocationConfig(backend="none")), NoLocationSource)

    def test_static_location(self):
        source = create_location_source(LocationConfig(backend="static", lat=1.5, lon=2.5, accuracy=3.0))

        assert isinstance(source, StaticLocationSource)
        assert source.current_position(1000) == Location(1.5, 2.5, 3.0)

    def test_audio_disabled(self):
        assert isinstance(create_audio_source(AudioConfig(enabled=False), 2000), NoAudioSource)

    def test_audio_enabled(self):
        source = create_audio_source(AudioConfig(enabled=True), 2000)

        assert isinstance(source, ArecordAudioSource)
        assert source.timeout_s == 2.0

    def test_alarm(self):
        assert isinstance(create_alarm(None), LogAlarm)
        assert isinstance(create_alarm(["aplay", "alarm.wav"]), CommandAlarm)

    def test_empty_alarm_command(self):
        with pytest.raises(ValueError):
            CommandAlarm([])
