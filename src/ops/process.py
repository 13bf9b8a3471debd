"""
Single-instance guard.

Only one monitor may own the IMU serial port and the camera, so the entry
point claims a PID file before opening any device.
"""

from __future__ import annotations

import atexit
import logging
import os
import signal
import time
from pathlib import Path
from typing import Optional

DEFAULT_PID_FILE = "data/crash_guard.pid"


def read_pid_file(pid_file: str = DEFAULT_PID_FILE) -> Optional[int]:
    """Return the recorded PID, or None if the file is missing or garbled."""
    path = Path(pid_file)
    if not path.exists():
        return None
    try:
        return int(path.read_text().strip())
    except (ValueError, OSError):
        return None


def is_process_running(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


def write_pid_file(pid_file: str = DEFAULT_PID_FILE) -> None:
    path = Path(pid_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(os.getpid()))
    logging.debug(f"Wrote PID {os.getpid()} to {path}")
    atexit.register(remove_pid_file, pid_file)


def remove_pid_file(pid_file: str = DEFAULT_PID_FILE) -> None:
    path = Path(pid_file)
    try:
        if path.exists():
            path.unlink()
            logging.debug(f"Removed PID file: {path}")
    except OSError as e:
        logging.warning(f"Failed to remove PID file: {e}")


def terminate(pid: int, timeout_s: float = 5.0) -> bool:
    """SIGTERM, then SIGKILL if the process outlives timeout_s."""
    if not is_process_running(pid):
        return True
    try:
        os.kill(pid, signal.SIGTERM)
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            if not is_process_running(pid):
                return True
            time.sleep(0.2)
        logging.warning(f"Process {pid} ignored SIGTERM, sending SIGKILL")
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        return True
    except PermissionError as e:
        logging.error(f"Not allowed to stop process {pid}: {e}")
        return False
    return True


def ensure_single_instance(pid_file: str = DEFAULT_PID_FILE, kill_existing: bool = False) -> bool:
    """
    Claim the PID file for this process.

    Returns:
        False if another live instance holds it and kill_existing is False
        (or it could not be stopped).
    """
    existing_pid = read_pid_file(pid_file)

    if existing_pid is not None and existing_pid != os.getpid():
        if is_process_running(existing_pid):
            if not kill_existing:
                logging.error(
                    f"Another instance is already running (PID {existing_pid}). "
                    f"Use --kill-existing to replace it, or --stop to stop it."
                )
                return False
            logging.info(f"Stopping existing instance (PID {existing_pid})...")
            if not terminate(existing_pid):
                return False
        else:
            logging.info(f"Removing stale PID file (PID {existing_pid} not running)")
        remove_pid_file(pid_file)

    write_pid_file(pid_file)
    return True


def stop_existing_instance(pid_file: str = DEFAULT_PID_FILE) -> bool:
    """Stop the instance recorded in the PID file, if any."""
    existing_pid = read_pid_file(pid_file)
    if existing_pid is None:
        print("No PID file found - no instance to stop.")
        return True

    if not is_process_running(existing_pid):
        print(f"PID file exists but process {existing_pid} is not running. Cleaning up.")
        remove_pid_file(pid_file)
        return True

    print(f"Stopping instance (PID {existing_pid})...")
    if terminate(existing_pid):
        remove_pid_file(pid_file)
        print(f"Instance stopped (PID {existing_pid})")
        return True
    print(f"Failed to stop instance (PID {existing_pid})")
    return False
