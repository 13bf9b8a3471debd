"""
Evidence layer: capture sequence, collaborators and record sealing.
"""

from .capture import EvidenceCapturer, generate_event_id
from .sealer import canonical_json, compute_digest, require_valid, seal_record, verification_payload, verify_record
from .sources import (
    Alarm,
    ArecordAudioSource,
    AudioSource,
    CommandAlarm,
    GpsdLocationSource,
    LocationSource,
    LogAlarm,
    NoAudioSource,
    NoLocationSource,
    StaticLocationSource,
)

__all__ = [
    "EvidenceCapturer",
    "generate_event_id",
    "canonical_json",
    "compute_digest",
    "require_valid",
    "seal_record",
    "verification_payload",
    "verify_record",
    "Alarm",
    "ArecordAudioSource",
    "AudioSource",
    "CommandAlarm",
    "GpsdLocationSource",
    "LocationSource",
    "LogAlarm",
    "NoAudioSource",
    "NoLocationSource",
    "StaticLocationSource",
]
