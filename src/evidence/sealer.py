"""
Record sealing: canonical serialization and SHA-256 digest.

The canonical form is compact JSON of every field except the digest, in the
fixed key order defined by TrustPacket.to_dict(), UTF-8 encoded. Verification
repeats the exact same procedure, so any change to any field value changes
the digest.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Dict

from errors import RecordIntegrityError
from models.record import TrustPacket


def canonical_json(packet: TrustPacket) -> str:
    """Serialize all fields except the digest in fixed order."""
    return json.dumps(
        packet.to_dict(include_digest=False),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def compute_digest(packet: TrustPacket) -> str:
    return hashlib.sha256(canonical_json(packet).encode("utf-8")).hexdigest()


def seal_record(packet: TrustPacket) -> TrustPacket:
    """Return a new packet carrying the digest of its contents."""
    return packet.with_digest(compute_digest(packet))


def verify_record(packet: TrustPacket) -> bool:
    """True when the packet is sealed and its digest matches its fields."""
    if packet.digest is None:
        return False
    return hmac.compare_digest(packet.digest, compute_digest(packet))


def require_valid(packet: TrustPacket) -> TrustPacket:
    """Return the packet unchanged or raise RecordIntegrityError."""
    if not verify_record(packet):
        raise RecordIntegrityError(f"Digest mismatch for trust packet {packet.event_id}")
    return packet


def verification_payload(packet: TrustPacket) -> Dict[str, Any]:
    """
    The data a third party needs to re-check the digest: every field except
    the digest itself, in canonical order.
    """
    return packet.to_dict(include_digest=False)
