from django.http import HttpRequest
from ninja_extra import ControllerBase
from ninja_extra.permissions import BasePermission

from events import models


class RootPermission(BasePermission):
    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Must implement abstract method. This is due to an error in Ninja Extra.

        This Method will be ignored, only has_object_permission will be called.
        """
        return True


class GateStaffPermission(RootPermission):
    def has_object_permission(self, request: HttpRequest, controller: ControllerBase, obj: models.Event) -> bool:
        """Can validate tickets at this event's door."""
        return obj.has_gate_access(request.user)  # type: ignore[arg-type]


class TicketHolderPermission(RootPermission):
    def has_object_permission(self, request: HttpRequest, controller: ControllerBase, obj: models.Ticket) -> bool:
        """Can see the ticket's scan code: its owner or the event's organizer."""
        user = request.user
        if getattr(user, "is_superuser", False):
            return True
        return user.pk in (obj.owner_id, obj.event.organizer_id)


class TicketOrganizerPermission(RootPermission):
    def has_object_permission(self, request: HttpRequest, controller: ControllerBase, obj: models.Ticket) -> bool:
        """Can manage the ticket: the event's organizer."""
        user = request.user
        return bool(getattr(user, "is_superuser", False) or obj.event.organizer_id == user.pk)
