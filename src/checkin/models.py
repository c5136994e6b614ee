import typing as t

from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel
from events.models import Event, Ticket

from .enums import RECORDED_OUTCOME_CHOICES, RedemptionOutcome
from .exceptions import ImmutableAttemptError


class RedemptionAttemptQuerySet(models.QuerySet["RedemptionAttempt"]):
    def update(self, **kwargs: t.Any) -> int:
        raise ImmutableAttemptError("Redemption attempts cannot be updated.")

    def delete(self) -> tuple[int, dict[str, int]]:
        raise ImmutableAttemptError("Redemption attempts cannot be deleted.")

    def accepted(self) -> t.Self:
        return self.filter(outcome=RedemptionOutcome.ACCEPTED)


class RedemptionAttempt(TimeStampedModel):
    """One scan submission and how it ended. Append-only audit trail."""

    ticket = models.ForeignKey(
        Ticket,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="redemption_attempts",
        help_text="Empty when the code could not be resolved to a ticket.",
    )
    ticket_ref = models.CharField(max_length=64, blank=True, default="", help_text="Identifier as presented.")
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="redemption_attempts")
    validator = models.CharField(max_length=150)
    attempted_at = models.DateTimeField(default=timezone.now)
    outcome = models.CharField(max_length=32, choices=RECORDED_OUTCOME_CHOICES)
    location = models.CharField(max_length=64, blank=True, default="")
    manual_entry = models.BooleanField(default=False)
    raw_digest = models.CharField(max_length=64, blank=True, help_text="SHA-256 of the raw scanned text.")
    reconciled = models.BooleanField(default=False, help_text="Written after the fact by the audit reconciliation.")

    objects = RedemptionAttemptQuerySet.as_manager()

    class Meta:
        ordering = ["-attempted_at"]
        indexes = [
            models.Index(fields=["event", "-attempted_at"], name="ix_attempt_event_time"),
            models.Index(fields=["ticket", "outcome"], name="ix_attempt_ticket_outcome"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.get_outcome_display()} by {self.validator} at {self.attempted_at:%Y-%m-%d %H:%M:%S}"

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Insert only."""
        if not self._state.adding:
            raise ImmutableAttemptError("Redemption attempts cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, *args: t.Any, **kwargs: t.Any) -> tuple[int, dict[str, int]]:
        raise ImmutableAttemptError("Redemption attempts cannot be deleted.")
