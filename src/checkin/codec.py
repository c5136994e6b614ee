"""Ticket scan code encoding and decoding.

A ticket's scannable code is a compact JSON object::

    {"eventId": "<uuid>", "ticketId": "<uuid>", "token": "<32 hex>", "type": "EVENT_TICKET"}

``token`` is an HMAC over the ticket and event identifiers (see ``common.signing``),
so a structurally valid code cannot be produced without the server-held secret.

Scanners may also deliver a bare identifier: the ticket UUID or its printed
``TKT-XXXX-XXXX`` reference. Bare identifiers carry no token; the coordinator
settles whether they exist and which event they belong to.

This module is pure: decoding never raises and never touches the database.
"""

import io
import re
from dataclasses import dataclass
from uuid import UUID

import orjson
import qrcode
from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from common.signing import generate_token, verify_token
from events.models import REFERENCE_PATTERN

from .enums import DecodeError

__all__ = [
    "TICKET_CODE_TAG",
    "ScanPayload",
    "BareTicketId",
    "DecodeFailure",
    "DecodeResult",
    "encode",
    "decode",
    "decode_manual",
    "render_png",
]

TICKET_CODE_TAG = "EVENT_TICKET"

_TOKEN_DOMAIN = "turnstile:ticket-code:v1"
_MAX_RAW_LENGTH = 1024
_REFERENCE_RE = re.compile(REFERENCE_PATTERN)


class _WirePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str
    ticket_id: UUID = Field(alias="ticketId")
    event_id: UUID = Field(alias="eventId")
    token: str = Field(pattern=r"^[0-9a-fA-F]{32}$")


@dataclass(frozen=True)
class ScanPayload:
    """A structured code whose integrity token verified."""

    ticket_id: UUID
    event_id: UUID
    tag: str
    token: str


@dataclass(frozen=True)
class BareTicketId:
    """A bare identifier (UUID string or ticket reference), unverified."""

    identifier: str


@dataclass(frozen=True)
class DecodeFailure:
    error: DecodeError
    detail: str


DecodeResult = ScanPayload | BareTicketId | DecodeFailure


def _token_for(ticket_id: UUID, event_id: UUID) -> str:
    return generate_token(f"{ticket_id}:{event_id}", domain=_TOKEN_DOMAIN, secret=settings.CHECKIN_CODE_SECRET)


def encode(ticket_id: UUID, event_id: UUID) -> str:
    """Encode the scan code for a ticket. Deterministic for a given secret."""
    return orjson.dumps(
        {
            "type": TICKET_CODE_TAG,
            "ticketId": str(ticket_id),
            "eventId": str(event_id),
            "token": _token_for(ticket_id, event_id),
        },
        option=orjson.OPT_SORT_KEYS,
    ).decode()


def _decode_bare(text: str) -> BareTicketId | DecodeFailure:
    try:
        return BareTicketId(identifier=str(UUID(text)))
    except ValueError:
        pass
    reference = text.upper()
    if _REFERENCE_RE.match(reference):
        return BareTicketId(identifier=reference)
    return DecodeFailure(DecodeError.MALFORMED, "not a ticket identifier")


def _decode_structured(text: str) -> ScanPayload | DecodeFailure:
    try:
        data = orjson.loads(text)
    except orjson.JSONDecodeError:
        return DecodeFailure(DecodeError.MALFORMED, "unparsable payload")
    if not isinstance(data, dict):
        return DecodeFailure(DecodeError.MALFORMED, "payload is not an object")
    try:
        wire = _WirePayload.model_validate(data)
    except PydanticValidationError:
        return DecodeFailure(DecodeError.MALFORMED, "payload fields are invalid")
    if wire.type != TICKET_CODE_TAG:
        return DecodeFailure(DecodeError.MALFORMED, "payload is not a ticket code")
    if not verify_token(
        f"{wire.ticket_id}:{wire.event_id}", wire.token, domain=_TOKEN_DOMAIN, secret=settings.CHECKIN_CODE_SECRET
    ):
        return DecodeFailure(DecodeError.FORGED, "integrity token mismatch")
    return ScanPayload(ticket_id=wire.ticket_id, event_id=wire.event_id, tag=wire.type, token=wire.token.lower())


def decode(raw: str) -> DecodeResult:
    """Decode raw scanned text.

    Returns:
        ScanPayload for a verified structured code, BareTicketId for a bare identifier,
        or DecodeFailure. A structured code with a bad token is FORGED, never a bare id.
    """
    text = raw.strip()
    if not text or len(text) > _MAX_RAW_LENGTH:
        return DecodeFailure(DecodeError.MALFORMED, "empty or oversized input")
    if text.startswith("{"):
        return _decode_structured(text)
    return _decode_bare(text)


def decode_manual(text: str) -> BareTicketId | DecodeFailure:
    """Decode an identifier typed by an operator. Only the bare shape is accepted."""
    text = text.strip()
    if not text or len(text) > _MAX_RAW_LENGTH:
        return DecodeFailure(DecodeError.MALFORMED, "empty or oversized input")
    return _decode_bare(text)


def render_png(payload: str) -> bytes:
    """Render a scan code as a QR PNG."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()
