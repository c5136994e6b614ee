import typing as t
from contextlib import contextmanager
from datetime import datetime
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from events.models import Event, Ticket

from ..enums import RedemptionOutcome
from ..models import RedemptionAttempt
from .base import (
    AttemptDraft,
    AttemptPage,
    AttemptRecord,
    EventRecord,
    LedgerUnavailableError,
    MarkResult,
    TicketNotFoundError,
    TicketRecord,
)

logger = structlog.get_logger(__name__)

TicketStatus = Ticket.TicketStatus


@contextmanager
def _storage_guard(operation: str) -> t.Iterator[None]:
    """Re-raise database failures (including statement timeouts) and rejected rows as LedgerUnavailableError."""
    try:
        yield
    except (DatabaseError, ValidationError) as exc:
        logger.warning("ledger_storage_error", operation=operation, error=str(exc), error_type=type(exc).__name__)
        raise LedgerUnavailableError(f"{operation} failed: {exc}") from exc


def ticket_record(ticket: Ticket) -> TicketRecord:
    return TicketRecord(
        id=ticket.id,
        reference=ticket.reference,
        event_id=ticket.event_id,
        status=TicketStatus(ticket.status),
        ticket_type_name=ticket.ticket_type.name,
        price=ticket.price_paid,
        owner_name=ticket.owner_name,
        owner_email=ticket.owner_email,
        purchased_at=ticket.purchased_at,
        checked_in_at=ticket.checked_in_at,
        checked_in_by=ticket.checked_in_by,
        checked_in_location=ticket.checked_in_location,
    )


def attempt_record(attempt: RedemptionAttempt) -> AttemptRecord:
    return AttemptRecord(
        id=attempt.id,
        event_id=attempt.event_id,
        validator=attempt.validator,
        outcome=RedemptionOutcome(attempt.outcome),
        attempted_at=attempt.attempted_at,
        raw_digest=attempt.raw_digest,
        ticket_id=attempt.ticket_id,
        ticket_ref=attempt.ticket_ref,
        location=attempt.location,
        manual_entry=attempt.manual_entry,
        reconciled=attempt.reconciled,
    )


class DjangoLedger:
    """Ledger backed by the ``events.Ticket`` and ``checkin.RedemptionAttempt`` tables.

    Redemption is a single conditional UPDATE: the row only changes if it is still UNUSED
    and belongs to the presenting event, so concurrent scanners cannot both win. Every
    statement is bounded by the database ``statement_timeout`` configured in settings.
    """

    def get_event(self, event_id: UUID) -> EventRecord | None:
        with _storage_guard("get_event"):
            event = Event.objects.filter(pk=event_id).first()
        if event is None:
            return None
        opens, closes = event.check_in_window()
        return EventRecord(id=event.id, name=event.name, check_in_opens_at=opens, check_in_closes_at=closes)

    def get_ticket(self, identifier: UUID | str) -> TicketRecord | None:
        lookup = _ticket_lookup(identifier)
        with _storage_guard("get_ticket"):
            ticket = Ticket.objects.full().filter(**lookup).first()
        return ticket_record(ticket) if ticket else None

    def try_mark_used(
        self,
        ticket_id: UUID,
        expected_event_id: UUID,
        *,
        validator: str,
        location: str,
        at: datetime,
    ) -> MarkResult:
        with _storage_guard("try_mark_used"), transaction.atomic():
            updated = Ticket.objects.filter(pk=ticket_id, event_id=expected_event_id, status=TicketStatus.UNUSED).update(
                status=TicketStatus.USED,
                checked_in_at=at,
                checked_in_by=validator,
                checked_in_location=location,
                updated_at=at,
            )
            ticket = Ticket.objects.full().filter(pk=ticket_id).first()

        if updated:
            if ticket is None:
                raise LedgerUnavailableError(f"Ticket {ticket_id} vanished after being marked used.")
            return MarkResult(RedemptionOutcome.ACCEPTED, ticket_record(ticket))
        if ticket is None:
            return MarkResult(RedemptionOutcome.REJECTED_UNKNOWN_TICKET, None)
        record = ticket_record(ticket)
        if ticket.event_id != expected_event_id:
            return MarkResult(RedemptionOutcome.REJECTED_WRONG_EVENT, record)
        if ticket.status == TicketStatus.REFUNDED:
            return MarkResult(RedemptionOutcome.REJECTED_REFUNDED, record)
        if ticket.status == TicketStatus.USED:
            return MarkResult(RedemptionOutcome.REJECTED_ALREADY_USED, record)
        # The conditional update missed a row that reads back as UNUSED: the write did not happen.
        raise LedgerUnavailableError(f"Ticket {ticket_id} could not be transitioned.")

    def mark_refunded(self, ticket_id: UUID, *, at: datetime) -> TicketRecord:
        with _storage_guard("mark_refunded"), transaction.atomic():
            Ticket.objects.filter(pk=ticket_id).exclude(status=TicketStatus.REFUNDED).update(
                status=TicketStatus.REFUNDED, refunded_at=at, updated_at=at
            )
            ticket = Ticket.objects.full().filter(pk=ticket_id).first()
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} does not exist.")
        return ticket_record(ticket)

    def append_attempt(self, draft: AttemptDraft) -> AttemptRecord:
        with _storage_guard("append_attempt"):
            attempt = RedemptionAttempt.objects.create(
                ticket_id=draft.ticket_id,
                ticket_ref=draft.ticket_ref,
                event_id=draft.event_id,
                validator=draft.validator,
                attempted_at=draft.attempted_at,
                outcome=draft.outcome,
                location=draft.location,
                manual_entry=draft.manual_entry,
                raw_digest=draft.raw_digest,
                reconciled=draft.reconciled,
            )
        return attempt_record(attempt)

    def list_attempts(self, event_id: UUID, *, page: int = 1, page_size: int = 50) -> AttemptPage:
        page = max(page, 1)
        offset = (page - 1) * page_size
        with _storage_guard("list_attempts"):
            qs = RedemptionAttempt.objects.filter(event_id=event_id).order_by("-attempted_at", "-created_at")
            total = qs.count()
            items = [attempt_record(a) for a in qs[offset : offset + page_size]]
        return AttemptPage(items=items, total_count=total, page=page, page_size=page_size)


def _ticket_lookup(identifier: UUID | str) -> dict[str, t.Any]:
    if isinstance(identifier, UUID):
        return {"pk": identifier}
    try:
        return {"pk": UUID(identifier)}
    except ValueError:
        return {"reference": identifier.strip().upper()}
