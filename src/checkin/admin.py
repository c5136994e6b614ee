import typing as t

from django.contrib import admin
from django.http import HttpRequest
from unfold.admin import ModelAdmin

from .models import RedemptionAttempt


@admin.register(RedemptionAttempt)
class RedemptionAttemptAdmin(ModelAdmin):  # type: ignore[misc]
    """Read-only audit trail."""

    list_display = ["attempted_at", "event", "ticket_ref", "outcome", "validator", "location", "manual_entry", "reconciled"]
    list_filter = ["outcome", "manual_entry", "reconciled", "event__name"]
    search_fields = ["ticket_ref", "validator", "raw_digest"]
    date_hierarchy = "attempted_at"
    list_select_related = ["event"]

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(self, request: HttpRequest, obj: t.Any = None) -> bool:
        return False

    def has_delete_permission(self, request: HttpRequest, obj: t.Any = None) -> bool:
        return False
