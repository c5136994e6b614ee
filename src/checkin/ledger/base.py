"""The redemption ledger contract.

The ledger is the single source of truth for "has this ticket been used" and the
only writer of ``Ticket.status``. Callers see plain frozen records, never ORM
instances, so the coordinator works the same against every backend.
"""

import math
import typing as t
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from events.models import Ticket

from ..enums import RedemptionOutcome

TicketStatus = Ticket.TicketStatus


class LedgerUnavailableError(Exception):
    """The ledger could not answer: storage unreachable, timed out or lock contention.

    Never a statement about the ticket itself.
    """


class TicketNotFoundError(LookupError):
    """Raised by mutating operations addressed to a ticket that does not exist."""


@dataclass(frozen=True)
class EventRecord:
    id: UUID
    name: str
    check_in_opens_at: datetime
    check_in_closes_at: datetime

    def is_check_in_open(self, now: datetime) -> bool:
        return self.check_in_opens_at <= now <= self.check_in_closes_at


@dataclass(frozen=True)
class TicketRecord:
    id: UUID
    reference: str
    event_id: UUID
    status: TicketStatus
    ticket_type_name: str
    price: Decimal
    owner_name: str
    owner_email: str
    purchased_at: datetime
    checked_in_at: datetime | None = None
    checked_in_by: str = ""
    checked_in_location: str = ""


@dataclass(frozen=True)
class MarkResult:
    """Answer of ``try_mark_used``: the decision plus the ticket as it stands after it."""

    outcome: RedemptionOutcome
    ticket: TicketRecord | None


@dataclass(frozen=True)
class AttemptDraft:
    """A redemption attempt about to be appended."""

    event_id: UUID
    validator: str
    outcome: RedemptionOutcome
    attempted_at: datetime
    raw_digest: str
    ticket_id: UUID | None = None
    ticket_ref: str = ""
    location: str = ""
    manual_entry: bool = False
    reconciled: bool = False


@dataclass(frozen=True)
class AttemptRecord:
    id: UUID
    event_id: UUID
    validator: str
    outcome: RedemptionOutcome
    attempted_at: datetime
    raw_digest: str
    ticket_id: UUID | None
    ticket_ref: str
    location: str
    manual_entry: bool
    reconciled: bool


@dataclass(frozen=True)
class AttemptPage:
    items: list[AttemptRecord]
    total_count: int
    page: int
    page_size: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_pages", math.ceil(self.total_count / self.page_size) if self.page_size else 0)

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


class Ledger(t.Protocol):
    """Protocol every ledger backend implements."""

    def get_event(self, event_id: UUID) -> EventRecord | None:
        """Return the event with its effective check-in window, or None."""
        ...

    def get_ticket(self, identifier: UUID | str) -> TicketRecord | None:
        """Look a ticket up by UUID or by its printed reference."""
        ...

    def try_mark_used(
        self,
        ticket_id: UUID,
        expected_event_id: UUID,
        *,
        validator: str,
        location: str,
        at: datetime,
    ) -> MarkResult:
        """Atomically redeem a ticket.

        Checks, in order: unknown ticket, wrong event, refunded, already used. Only an
        UNUSED ticket of ``expected_event_id`` transitions to USED, and for any number of
        concurrent callers on the same ticket exactly one observes ACCEPTED.

        Raises:
            LedgerUnavailableError: the decision could not be made.
        """
        ...

    def mark_refunded(self, ticket_id: UUID, *, at: datetime) -> TicketRecord:
        """Move a ticket to REFUNDED (terminal). Refunding twice is a no-op.

        Raises:
            TicketNotFoundError: no such ticket.
            LedgerUnavailableError: storage failure.
        """
        ...

    def append_attempt(self, draft: AttemptDraft) -> AttemptRecord:
        """Append one immutable attempt row. Failures raise LedgerUnavailableError."""
        ...

    def list_attempts(self, event_id: UUID, *, page: int = 1, page_size: int = 50) -> AttemptPage:
        """Attempts presented against ``event_id``, newest first."""
        ...
