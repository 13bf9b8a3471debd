"""
Exception types shared across the crash guard modules.
"""


class CrashGuardError(Exception):
    """Base class for crash guard errors."""


class CaptureError(CrashGuardError):
    """Evidence capture could not produce a record (image acquisition failed)."""


class DispatchError(CrashGuardError):
    """An outbound item could not be delivered and will not be retried."""

    def __init__(self, message: str, item_id: str = None):
        super().__init__(message)
        self.item_id = item_id


class RecordIntegrityError(CrashGuardError):
    """A trust packet digest does not match its contents."""
