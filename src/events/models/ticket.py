import secrets
import typing as t

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel

from .event import Event, TicketType

# Crockford-style alphabet: no 0/O or 1/I/L, so references survive being read aloud at the door.
REFERENCE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTVWXYZ"
REFERENCE_PATTERN = r"^TKT-[0-9A-Z]{4}-[0-9A-Z]{4}$"


def generate_ticket_reference() -> str:
    """A short, human-typable ticket reference, e.g. ``TKT-7KQ2-MX9D``."""
    chars = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(8))
    return f"TKT-{chars[:4]}-{chars[4:]}"


class TicketQuerySet(models.QuerySet["Ticket"]):
    def full(self) -> t.Self:
        """Select everything a redemption summary needs."""
        return self.select_related("owner", "ticket_type", "event")


class Ticket(TimeStampedModel):
    """One admission unit to a specific event.

    ``status`` and the ``checked_in_*`` stamp are written exclusively by the redemption
    ledger (see ``checkin.ledger``); everything else is set at issuance.
    """

    class TicketStatus(models.TextChoices):
        UNUSED = "unused", "Unused"
        USED = "used", "Used"
        REFUNDED = "refunded", "Refunded"

    reference = models.CharField(max_length=13, unique=True, default=generate_ticket_reference, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="tickets")
    ticket_type = models.ForeignKey(TicketType, on_delete=models.PROTECT, related_name="tickets")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="tickets",
        help_text="Empty for guest purchases.",
    )
    guest_name = models.CharField(max_length=255, blank=True, default="")
    guest_email = models.EmailField(blank=True, default="")
    price_paid = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    status = models.CharField(max_length=20, choices=TicketStatus.choices, default=TicketStatus.UNUSED, db_index=True)
    purchased_at = models.DateTimeField(default=timezone.now)

    checked_in_at = models.DateTimeField(null=True, blank=True, editable=False)
    checked_in_by = models.CharField(max_length=150, blank=True, default="", editable=False)
    checked_in_location = models.CharField(max_length=64, blank=True, default="", editable=False)
    refunded_at = models.DateTimeField(null=True, blank=True, editable=False)

    objects = TicketQuerySet.as_manager()

    class Meta:
        ordering = ["-purchased_at"]
        indexes = [
            models.Index(fields=["event", "status"], name="ix_ticket_event_status"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Ticket {self.reference} for {self.event.name}"

    @property
    def owner_name(self) -> str:
        if self.owner is not None:
            full_name = self.owner.get_full_name()  # type: ignore[attr-defined]
            return str(full_name or self.owner.get_username())
        return self.guest_name or "Guest"

    @property
    def owner_email(self) -> str:
        if self.owner is not None and self.owner.email:  # type: ignore[attr-defined]
            return str(self.owner.email)  # type: ignore[attr-defined]
        return self.guest_email or "Guest"
