from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import Schema
from pydantic import Field

from common.schema import LocationTag

from .enums import RedemptionOutcome


class ScanRequestSchema(Schema):
    code: str = Field(..., max_length=4096, description="Decoded text of the scanned code.")
    location: LocationTag | None = None


class ManualEntryRequestSchema(Schema):
    ticket: str = Field(..., min_length=1, max_length=64, description="Ticket UUID or reference, as typed.")
    location: LocationTag | None = None


class TicketSummarySchema(Schema):
    ticket_id: UUID
    reference: str
    owner_name: str
    owner_email: str
    ticket_type_name: str
    price: Decimal
    purchased_at: datetime
    prior_validator: str | None = None
    prior_validated_at: datetime | None = None
    prior_location: str | None = None


class RedemptionResultSchema(Schema):
    outcome: RedemptionOutcome
    message: str
    event_id: UUID
    validator: str
    attempted_at: datetime
    location: str = ""
    manual_entry: bool
    audit_recorded: bool
    retry_collision: bool
    attempt_id: UUID | None = None
    ticket_summary: TicketSummarySchema | None = None


class AttemptSchema(Schema):
    id: UUID
    ticket_id: UUID | None
    ticket_ref: str
    validator: str
    attempted_at: datetime
    outcome: RedemptionOutcome
    location: str
    manual_entry: bool
    reconciled: bool


class AttemptPageSchema(Schema):
    items: list[AttemptSchema]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool


class TicketTypeStatsSchema(Schema):
    name: str
    sold: int
    used: int
    revenue: Decimal


class AttendanceStatsSchema(Schema):
    event_id: UUID
    total_tickets: int
    unused: int
    used: int
    refunded: int
    attendance_rate: int
    accepted_last_24h: int
    generated_at: datetime
    by_ticket_type: list[TicketTypeStatsSchema]
    attempts_by_outcome: dict[str, int]
