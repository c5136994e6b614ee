from decimal import Decimal

import structlog
from django.contrib.auth.base_user import AbstractBaseUser
from django.utils import timezone

from checkin import codec
from checkin.ledger import get_ledger
from checkin.stats import invalidate_attendance_stats
from events.models import Event, Ticket, TicketType

logger = structlog.get_logger(__name__)


def issue_ticket(
    event: Event,
    ticket_type: TicketType,
    *,
    owner: AbstractBaseUser | None = None,
    guest_name: str = "",
    guest_email: str = "",
    price_paid: Decimal | None = None,
) -> Ticket:
    """Create an UNUSED ticket once an order is settled.

    Payment capture happens before this is called; ``price_paid`` defaults to the ticket type's price.
    """
    ticket = Ticket.objects.create(
        event=event,
        ticket_type=ticket_type,
        owner=owner,
        guest_name=guest_name,
        guest_email=guest_email,
        price_paid=ticket_type.price if price_paid is None else price_paid,
    )
    logger.info("ticket_issued", ticket_id=str(ticket.id), event_id=str(event.id), guest=owner is None)
    return ticket


def scan_code_for(ticket: Ticket) -> str:
    """The payload printed in the ticket's QR code."""
    return codec.encode(ticket.id, ticket.event_id)


def refund_ticket(ticket: Ticket) -> Ticket:
    """Refund a ticket. Terminal: a refunded ticket never admits anyone again."""
    get_ledger().mark_refunded(ticket.id, at=timezone.now())
    invalidate_attendance_stats(ticket.event_id)
    ticket.refresh_from_db()
    logger.info("ticket_refunded", ticket_id=str(ticket.id), event_id=str(ticket.event_id))
    return ticket
