"""Admin classes for events, ticket types and tickets."""

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html
from unfold.admin import ModelAdmin, TabularInline

from events import models


class TicketTypeInline(TabularInline):  # type: ignore[misc]
    model = models.TicketType
    extra = 0
    fields = ["name", "price"]


@admin.register(models.Event)
class EventAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["name", "organizer", "start", "end", "check_in_starts_at", "check_in_ends_at"]
    search_fields = ["name", "organizer__username"]
    filter_horizontal = ["gate_staff"]
    date_hierarchy = "start"
    inlines = [TicketTypeInline]


@admin.register(models.Ticket)
class TicketAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["reference", "event_link", "owner_name", "ticket_type", "status", "checked_in_at", "checked_in_by"]
    list_filter = ["status", "event__name", "ticket_type__name"]
    search_fields = ["reference", "event__name", "owner__username", "guest_email"]
    # Status is owned by the redemption ledger; refunds go through the API.
    readonly_fields = [
        "id",
        "reference",
        "status",
        "checked_in_at",
        "checked_in_by",
        "checked_in_location",
        "refunded_at",
    ]
    date_hierarchy = "purchased_at"

    @admin.display(description="Event")
    def event_link(self, obj: models.Ticket) -> str:
        url = reverse("admin:events_event_change", args=[obj.event_id])
        return format_html('<a href="{}">{}</a>', url, obj.event.name)
