import threading
import typing as t
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.utils import timezone

from events.models import Ticket, generate_ticket_reference

from ..enums import RedemptionOutcome
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

TicketStatus = Ticket.TicketStatus


class InMemoryLedger:
    """Process-local ledger for rehearsal stations and tests.

    All state sits behind one lock. Acquiring it is bounded by ``lock_timeout``; a caller
    that cannot get it in time gets LedgerUnavailableError, same as a database timeout.
    """

    def __init__(self, lock_timeout: float | None = None) -> None:
        self.lock_timeout = settings.CHECKIN_MEMORY_LEDGER_LOCK_TIMEOUT if lock_timeout is None else lock_timeout
        self._lock = threading.Lock()
        self._events: dict[UUID, EventRecord] = {}
        self._tickets: dict[UUID, TicketRecord] = {}
        self._references: dict[str, UUID] = {}
        self._attempts: list[AttemptRecord] = []

    def _locked(self) -> "_LockGuard":
        return _LockGuard(self._lock, self.lock_timeout)

    # ---- Seeding ----

    def add_event(
        self,
        name: str,
        *,
        check_in_opens_at: datetime | None = None,
        check_in_closes_at: datetime | None = None,
        event_id: UUID | None = None,
    ) -> EventRecord:
        now = timezone.now()
        event = EventRecord(
            id=event_id or uuid.uuid4(),
            name=name,
            check_in_opens_at=check_in_opens_at or datetime.min.replace(tzinfo=now.tzinfo),
            check_in_closes_at=check_in_closes_at or datetime.max.replace(tzinfo=now.tzinfo),
        )
        with self._locked():
            self._events[event.id] = event
        return event

    def add_ticket(
        self,
        event_id: UUID,
        *,
        owner_name: str = "Guest",
        owner_email: str = "Guest",
        ticket_type_name: str = "General Admission",
        price: Decimal = Decimal("0.00"),
        status: str = TicketStatus.UNUSED,
        reference: str | None = None,
    ) -> TicketRecord:
        ticket = TicketRecord(
            id=uuid.uuid4(),
            reference=reference or generate_ticket_reference(),
            event_id=event_id,
            status=TicketStatus(status),
            ticket_type_name=ticket_type_name,
            price=price,
            owner_name=owner_name,
            owner_email=owner_email,
            purchased_at=timezone.now(),
        )
        with self._locked():
            if event_id not in self._events:
                raise KeyError(f"Unknown event {event_id}")
            self._tickets[ticket.id] = ticket
            self._references[ticket.reference] = ticket.id
        return ticket

    # ---- Ledger ----

    def get_event(self, event_id: UUID) -> EventRecord | None:
        with self._locked():
            return self._events.get(event_id)

    def get_ticket(self, identifier: UUID | str) -> TicketRecord | None:
        with self._locked():
            return self._tickets.get(self._resolve(identifier))  # type: ignore[arg-type]

    def try_mark_used(
        self,
        ticket_id: UUID,
        expected_event_id: UUID,
        *,
        validator: str,
        location: str,
        at: datetime,
    ) -> MarkResult:
        with self._locked():
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                return MarkResult(RedemptionOutcome.REJECTED_UNKNOWN_TICKET, None)
            if ticket.event_id != expected_event_id:
                return MarkResult(RedemptionOutcome.REJECTED_WRONG_EVENT, ticket)
            if ticket.status == TicketStatus.REFUNDED:
                return MarkResult(RedemptionOutcome.REJECTED_REFUNDED, ticket)
            if ticket.status == TicketStatus.USED:
                return MarkResult(RedemptionOutcome.REJECTED_ALREADY_USED, ticket)
            ticket = replace(
                ticket,
                status=TicketStatus.USED,
                checked_in_at=at,
                checked_in_by=validator,
                checked_in_location=location,
            )
            self._tickets[ticket_id] = ticket
            return MarkResult(RedemptionOutcome.ACCEPTED, ticket)

    def mark_refunded(self, ticket_id: UUID, *, at: datetime) -> TicketRecord:
        with self._locked():
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} does not exist.")
            if ticket.status != TicketStatus.REFUNDED:
                ticket = replace(ticket, status=TicketStatus.REFUNDED)
                self._tickets[ticket_id] = ticket
            return ticket

    def append_attempt(self, draft: AttemptDraft) -> AttemptRecord:
        attempt = AttemptRecord(
            id=uuid.uuid4(),
            event_id=draft.event_id,
            validator=draft.validator,
            outcome=draft.outcome,
            attempted_at=draft.attempted_at,
            raw_digest=draft.raw_digest,
            ticket_id=draft.ticket_id,
            ticket_ref=draft.ticket_ref,
            location=draft.location,
            manual_entry=draft.manual_entry,
            reconciled=draft.reconciled,
        )
        with self._locked():
            self._attempts.append(attempt)
        return attempt

    def list_attempts(self, event_id: UUID, *, page: int = 1, page_size: int = 50) -> AttemptPage:
        page = max(page, 1)
        with self._locked():
            matching = [a for a in reversed(self._attempts) if a.event_id == event_id]
        matching.sort(key=lambda a: a.attempted_at, reverse=True)
        offset = (page - 1) * page_size
        return AttemptPage(
            items=matching[offset : offset + page_size], total_count=len(matching), page=page, page_size=page_size
        )

    def _resolve(self, identifier: UUID | str) -> UUID | None:
        if isinstance(identifier, UUID):
            return identifier
        try:
            return UUID(identifier)
        except ValueError:
            return self._references.get(identifier.strip().upper())


class _LockGuard:
    def __init__(self, lock: threading.Lock, timeout: float) -> None:
        self.lock = lock
        self.timeout = timeout

    def __enter__(self) -> None:
        if not self.lock.acquire(timeout=self.timeout):
            raise LedgerUnavailableError(f"Ledger lock not acquired within {self.timeout}s.")

    def __exit__(self, *exc_info: t.Any) -> None:
        self.lock.release()
