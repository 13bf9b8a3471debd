from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException, Request, status
from fastapi.responses import JSONResponse

from evidence.sealer import compute_digest, verify_record
from models.record import TrustPacket
from runtime.commands import Command

from ..api_models import (
    CommandResponse,
    LocationModel,
    QueueClearResponse,
    QueueItemModel,
    QueueResponse,
    RecordSummaryResponse,
    StatusResponse,
    VerifyResponse,
)

router = APIRouter()


def _session(request: Request):
    return request.app.state.session


def _queue_or_404(request: Request):
    outbox = _session(request).outbox
    if outbox is None:
        raise HTTPException(status_code=404, detail="Outbound queue not configured")
    return outbox


def _database_or_404(request: Request):
    db = _session(request).database
    if db is None:
        raise HTTPException(status_code=404, detail="Record storage not configured")
    return db


def _latest_or_404(request: Request) -> TrustPacket:
    packet = _database_or_404(request).get_latest_record()
    if packet is None:
        raise HTTPException(status_code=404, detail="No trust packet recorded yet")
    return packet


@router.get("/status", response_model=StatusResponse)
def get_status(request: Request):
    return StatusResponse(**_session(request).status().to_dict())


def _submit(request: Request, command: Command) -> CommandResponse:
    accepted = request.app.state.commands.submit(command)
    if not accepted:
        raise HTTPException(status_code=503, detail="Command channel full")
    return CommandResponse(command=command.value, accepted=accepted)


@router.post("/trigger", response_model=CommandResponse, status_code=status.HTTP_202_ACCEPTED)
def post_trigger(request: Request):
    """Manual emergency trigger (panic button)."""
    return _submit(request, Command.TRIGGER)


@router.post("/cancel", response_model=CommandResponse, status_code=status.HTTP_202_ACCEPTED)
def post_cancel(request: Request):
    return _submit(request, Command.CANCEL)


@router.post("/confirm", response_model=CommandResponse, status_code=status.HTTP_202_ACCEPTED)
def post_confirm(request: Request):
    return _submit(request, Command.CONFIRM)


@router.post("/reset", response_model=CommandResponse, status_code=status.HTTP_202_ACCEPTED)
def post_reset(request: Request):
    return _submit(request, Command.RESET)


@router.get("/records/latest", response_model=RecordSummaryResponse)
def get_latest_record(request: Request):
    packet = _latest_or_404(request)
    return RecordSummaryResponse(
        event_id=packet.event_id,
        timestamp=packet.timestamp,
        location=LocationModel(**packet.location.to_dict()),
        capture_delay_ms=packet.metadata.capture_delay_ms,
        digest=packet.digest,
        verified=verify_record(packet),
    )


@router.get("/records/latest/export")
def export_latest_record(request: Request):
    """Full sealed packet as a downloadable JSON file."""
    packet = _latest_or_404(request)
    filename = f"trust_packet_{packet.event_id}.json"
    return JSONResponse(
        content=packet.to_dict(),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/records/verify", response_model=VerifyResponse)
def post_verify_record(payload: Dict[str, Any] = Body(...)):
    try:
        packet = TrustPacket.from_dict(payload)
        valid = verify_record(packet)
        computed_digest = compute_digest(packet)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Malformed trust packet: {e}")

    if not valid:
        logging.warning(f"Verification failed for trust packet {packet.event_id}")
    return VerifyResponse(
        event_id=packet.event_id,
        valid=valid,
        digest=packet.digest,
        computed_digest=computed_digest,
    )


@router.get("/queue", response_model=QueueResponse)
def get_queue(request: Request):
    outbox = _queue_or_404(request)
    return QueueResponse(
        size=outbox.queue.size(),
        online=outbox.connectivity.is_online,
        max_attempts=outbox.queue.max_attempts,
        items=[
            QueueItemModel(
                id=item.id,
                kind=item.kind.value,
                enqueued_at=item.enqueued_at,
                attempt_count=item.attempt_count,
            )
            for item in outbox.queue.items()
        ],
    )


@router.delete("/queue", response_model=QueueClearResponse)
def delete_queue(request: Request):
    removed = _queue_or_404(request).queue.clear()
    logging.warning(f"Outbound queue cleared via API ({removed} items)")
    return QueueClearResponse(removed=removed)
