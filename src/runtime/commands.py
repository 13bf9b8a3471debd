"""
Operator commands from other threads (web API) to the main loop.

The session is single-threaded, so callers only enqueue here; the main loop
applies pending commands between samples.
"""

from __future__ import annotations

import logging
import queue
from enum import Enum
from typing import List


class Command(str, Enum):
    TRIGGER = "trigger"
    CANCEL = "cancel"
    CONFIRM = "confirm"
    RESET = "reset"


class ControlChannel:
    """Thread-safe FIFO of operator commands."""

    def __init__(self, maxsize: int = 32):
        self._queue: "queue.Queue[Command]" = queue.Queue(maxsize=maxsize)

    def submit(self, command: Command) -> bool:
        """Queue a command; returns False if the channel is full."""
        try:
            self._queue.put_nowait(Command(command))
        except queue.Full:
            logging.warning(f"Command channel full, dropping {command}")
            return False
        logging.info(f"Command queued: {Command(command).value}")
        return True

    def apply(self, session) -> int:
        """
        Apply queued commands to the session.

        Raises:
            CaptureError: If a confirm command triggers a failing capture.
                Commands after it stay queued.
        """
        applied = 0
        while True:
            try:
                command = self._queue.get_nowait()
            except queue.Empty:
                return applied
            if command == Command.TRIGGER:
                session.manual_trigger()
            elif command == Command.CANCEL:
                session.cancel()
            elif command == Command.CONFIRM:
                session.confirm()
            elif command == Command.RESET:
                session.reset()
            applied += 1
