"""
Crash Guard - Cloud Module

This module handles outbound delivery: alert webhook, Cloud Storage upload,
connectivity tracking and the durable outbox.
"""

from .auth import get_credentials
from .connectivity import Connectivity
from .dispatch import CloudDispatchChannel, DispatchChannel, alert_payload
from .outbox import DispatchOutcome, Outbox
from .sync import QueueWorker

__all__ = [
    'get_credentials',
    'Connectivity',
    'CloudDispatchChannel',
    'DispatchChannel',
    'alert_payload',
    'DispatchOutcome',
    'Outbox',
    'QueueWorker',
]
