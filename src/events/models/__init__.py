from .event import Event, TicketType
from .ticket import REFERENCE_PATTERN, Ticket, generate_ticket_reference

__all__ = [
    "Event",
    "TicketType",
    "Ticket",
    "REFERENCE_PATTERN",
    "generate_ticket_reference",
]
