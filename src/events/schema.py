from datetime import datetime
from uuid import UUID

from ninja import ModelSchema, Schema

from events.models import Ticket


class TicketSchema(ModelSchema):
    event_id: UUID
    ticket_type_name: str
    owner_name: str

    class Meta:
        model = Ticket
        fields = [
            "id",
            "reference",
            "status",
            "price_paid",
            "purchased_at",
            "checked_in_at",
            "checked_in_by",
            "checked_in_location",
            "refunded_at",
        ]

    @staticmethod
    def resolve_ticket_type_name(obj: Ticket) -> str:
        return obj.ticket_type.name


class TicketCodeSchema(Schema):
    ticket_id: UUID
    event_id: UUID
    reference: str
    code: str


class EventCheckInWindowSchema(Schema):
    id: UUID
    name: str
    check_in_opens_at: datetime
    check_in_closes_at: datetime
    is_open: bool
