"""
Local persistence: sealed trust packets and the durable outbound queue.
"""

from .database import Database, EXPECTED_SCHEMA_VERSION
from .queue import DEFAULT_MAX_ATTEMPTS, DurabilityQueue

__all__ = ['Database', 'EXPECTED_SCHEMA_VERSION', 'DurabilityQueue', 'DEFAULT_MAX_ATTEMPTS']
