import typing as t
from uuid import UUID

from django.http import HttpResponse
from ninja_extra import api_controller, route
from ninja_jwt.authentication import JWTAuth

from checkin import codec
from common.controllers import UserAwareController
from common.throttling import UserDefaultThrottle, WriteThrottle
from events import models, schema
from events.service import ticket_service

from .permissions import TicketHolderPermission, TicketOrganizerPermission


@api_controller("/events/{event_id}/tickets", auth=JWTAuth(), tags=["Tickets"], throttle=UserDefaultThrottle())
class TicketController(UserAwareController):
    """Scan codes and refunds for issued tickets."""

    def get_one(self, event_id: UUID, ticket_id: UUID) -> models.Ticket:
        """Fetch the ticket and run the route's object permissions on it."""
        return t.cast(
            models.Ticket,
            self.get_object_or_exception(models.Ticket.objects.full(), pk=ticket_id, event_id=event_id),
        )

    @route.get(
        "/{ticket_id}/code",
        url_name="ticket_scan_code",
        response=schema.TicketCodeSchema,
        permissions=[TicketHolderPermission()],
    )
    def get_scan_code(self, event_id: UUID, ticket_id: UUID) -> schema.TicketCodeSchema:
        """The payload to embed in the ticket's QR code."""
        ticket = self.get_one(event_id, ticket_id)
        return schema.TicketCodeSchema(
            ticket_id=ticket.id,
            event_id=ticket.event_id,
            reference=ticket.reference,
            code=ticket_service.scan_code_for(ticket),
        )

    @route.get(
        "/{ticket_id}/code.png",
        url_name="ticket_scan_code_png",
        response={200: None},
        permissions=[TicketHolderPermission()],
    )
    def get_scan_code_png(self, event_id: UUID, ticket_id: UUID) -> HttpResponse:
        """The ticket's QR code as a PNG image."""
        ticket = self.get_one(event_id, ticket_id)
        png = codec.render_png(ticket_service.scan_code_for(ticket))
        response = HttpResponse(png, content_type="image/png")
        response["Content-Disposition"] = f'inline; filename="{ticket.reference}.png"'
        response["Cache-Control"] = "private, no-store"
        return response

    @route.post(
        "/{ticket_id}/refund",
        url_name="refund_ticket",
        response=schema.TicketSchema,
        permissions=[TicketOrganizerPermission()],
        throttle=WriteThrottle(),
    )
    def refund(self, event_id: UUID, ticket_id: UUID) -> models.Ticket:
        """Refund a ticket. It can never be used for entry afterwards."""
        ticket = self.get_one(event_id, ticket_id)
        return ticket_service.refund_ticket(ticket)
