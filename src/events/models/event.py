import typing as t
from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel

if t.TYPE_CHECKING:
    from django.contrib.auth.base_user import AbstractBaseUser


class Event(TimeStampedModel):
    name = models.CharField(max_length=255)
    organizer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="organized_events")
    gate_staff = models.ManyToManyField(  # type: ignore[var-annotated]
        settings.AUTH_USER_MODEL,
        related_name="staffed_events",
        blank=True,
        help_text="Users allowed to scan tickets at the door.",
    )
    start = models.DateTimeField(db_index=True)
    end = models.DateTimeField(db_index=True)
    check_in_starts_at = models.DateTimeField(
        null=True, blank=True, help_text="When check-in opens. Defaults to shortly before the start."
    )
    check_in_ends_at = models.DateTimeField(
        null=True, blank=True, help_text="When check-in closes. Defaults to a while after the end."
    )

    class Meta:
        ordering = ["-start"]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    def clean(self) -> None:
        """Validate time windows."""
        super().clean()
        if self.end and self.start and self.end < self.start:
            raise DjangoValidationError({"end": "End date must be after start date."})

        if self.check_in_starts_at and self.check_in_ends_at:
            if self.check_in_ends_at <= self.check_in_starts_at:
                raise DjangoValidationError(
                    {"check_in_ends_at": "Check-in end time must be after check-in start time."}
                )

    def check_in_window(self) -> tuple[datetime, datetime]:
        """The effective check-in window, falling back to the configured early/late entry margins."""
        opens = self.check_in_starts_at or self.start - timedelta(minutes=settings.CHECKIN_EARLY_ENTRY_MINUTES)
        closes = self.check_in_ends_at or self.end + timedelta(minutes=settings.CHECKIN_LATE_ENTRY_MINUTES)
        return opens, closes

    def is_check_in_open(self, now: datetime | None = None) -> bool:
        """Check if check-in is currently open for this event."""
        opens, closes = self.check_in_window()
        return opens <= (now or timezone.now()) <= closes

    def has_gate_access(self, user: "AbstractBaseUser") -> bool:
        """Whether ``user`` may validate tickets for this event."""
        if getattr(user, "is_superuser", False) or self.organizer_id == user.pk:
            return True
        return self.gate_staff.filter(pk=user.pk).exists()


class TicketType(TimeStampedModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_types")
    name = models.CharField(max_length=255, default="General Admission")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "name"], name="unique_ticket_type_name_per_event"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} ({self.event.name})"
