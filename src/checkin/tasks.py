import typing as t
from datetime import datetime
from uuid import UUID

import structlog
from celery import shared_task
from django.db.models import Exists, OuterRef

from events.models import Ticket

from .enums import RedemptionOutcome
from .ledger import AttemptDraft, LedgerUnavailableError, get_ledger
from .ledger.django_ledger import DjangoLedger
from .models import RedemptionAttempt

logger = structlog.get_logger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(LedgerUnavailableError,),
    retry_backoff=True,
    max_retries=8,
)
def record_redemption_attempt(
    self: t.Any,
    *,
    event_id: str,
    validator: str,
    outcome: str,
    attempted_at: str,
    raw_digest: str,
    ticket_id: str | None = None,
    ticket_ref: str = "",
    location: str = "",
    manual_entry: bool = False,
) -> str:
    """Write an attempt whose synchronous append failed after the outcome was decided.

    Returns the id of the stored attempt.
    """
    attempt = get_ledger().append_attempt(
        AttemptDraft(
            event_id=UUID(event_id),
            validator=validator,
            outcome=RedemptionOutcome(outcome),
            attempted_at=datetime.fromisoformat(attempted_at),
            raw_digest=raw_digest,
            ticket_id=UUID(ticket_id) if ticket_id else None,
            ticket_ref=ticket_ref,
            location=location,
            manual_entry=manual_entry,
            reconciled=True,
        )
    )
    logger.info(
        "redemption_audit_gap_repaired",
        attempt_id=str(attempt.id),
        event_id=event_id,
        outcome=outcome,
        retries=self.request.retries,
    )
    return str(attempt.id)


@shared_task
def reconcile_unaudited_redemptions() -> int:
    """Backfill an ACCEPTED attempt for every USED ticket that has none.

    Idempotent and safe to run periodically. Returns the number of attempts written.
    """
    has_accepted_attempt = RedemptionAttempt.objects.accepted().filter(ticket=OuterRef("pk"))
    unaudited = Ticket.objects.filter(status=Ticket.TicketStatus.USED).exclude(Exists(has_accepted_attempt))

    ledger = DjangoLedger()
    written = 0
    for ticket in unaudited.iterator():
        ledger.append_attempt(
            AttemptDraft(
                event_id=ticket.event_id,
                validator=ticket.checked_in_by or "unknown",
                outcome=RedemptionOutcome.ACCEPTED,
                attempted_at=ticket.checked_in_at or ticket.updated_at,
                raw_digest="",
                ticket_id=ticket.id,
                ticket_ref=str(ticket.id),
                location=ticket.checked_in_location,
                reconciled=True,
            )
        )
        written += 1

    if written:
        logger.warning("redemption_audit_reconciled", attempts_written=written)
    return written
