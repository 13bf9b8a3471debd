"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from fakes import ManualClock  # noqa: E402
from storage.database import Database  # noqa: E402


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    fd, path = tempfile.mkstemp(suffix=".sqlite")
    os.close(fd)
    yield path
    # Cleanup
    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def database(temp_db):
    """Initialized Database on a temporary file."""
    db = Database(temp_db)
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
sensing:
  source: "serial"
  port: "/dev/ttyUSB0"
  baudrate: 115200
  buffer_capacity: 100

detection:
  sustained_window_ms: 100
  high_g_threshold: 4.0
  min_high_g_samples: 3
  min_window_samples: 5
  rotation_threshold: 90

confirmation:
  countdown_ms: 5000

capture:
  grace_delay_ms: 1000
  camera:
    device_id: 0
    resolution: [640, 480]
  location:
    backend: "none"

storage:
  local_database_path: "data/test.sqlite"
  retention_days: 7

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "sensing": {
            "source": "serial",
            "port": "/dev/ttyUSB0",
            "baudrate": 115200,
            "buffer_capacity": 100,
        },
        "detection": {
            "sustained_window_ms": 100,
            "high_g_threshold": 4.0,
            "min_high_g_samples": 3,
            "min_window_samples": 5,
            "rotation_threshold": 90,
        },
        "confirmation": {
            "countdown_ms": 5000,
        },
        "capture": {
            "grace_delay_ms": 1000,
            "image_timeout_ms": 10000,
            "camera": {
                "device_id": 0,
                "resolution": [1280, 720],
                "jpeg_quality": 80,
            },
            "location": {"backend": "gpsd"},
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
            "retention_days": 30,
        },
        "queue": {"max_attempts": 3},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
