"""Enums for ticket redemption."""

import typing as t
from enum import StrEnum

from django.db.models import TextChoices


class RedemptionOutcome(TextChoices):
    """Every way a single scan submission can end.

    All values except UNAVAILABLE are decided outcomes and are written to the attempt log.
    UNAVAILABLE means the ledger could not be reached; it says nothing about the ticket.
    """

    ACCEPTED = "accepted", "Accepted"
    REJECTED_ALREADY_USED = "rejected_already_used", "Already used"
    REJECTED_WRONG_EVENT = "rejected_wrong_event", "Wrong event"
    REJECTED_REFUNDED = "rejected_refunded", "Refunded"
    REJECTED_MALFORMED = "rejected_malformed", "Malformed code"
    REJECTED_FORGED = "rejected_forged", "Forged code"
    REJECTED_UNKNOWN_TICKET = "rejected_unknown_ticket", "Unknown ticket"
    REJECTED_CHECK_IN_CLOSED = "rejected_check_in_closed", "Check-in closed"
    UNAVAILABLE = "unavailable", "Temporarily unavailable"

    @property
    def is_transient(self) -> bool:
        return self is RedemptionOutcome.UNAVAILABLE

    @property
    def is_rejection(self) -> bool:
        return self not in (RedemptionOutcome.ACCEPTED, RedemptionOutcome.UNAVAILABLE)


RECORDED_OUTCOME_CHOICES: list[tuple[str, str]] = [
    (value, label) for value, label in RedemptionOutcome.choices if value != RedemptionOutcome.UNAVAILABLE
]


class DecodeError(StrEnum):
    MALFORMED = "malformed"
    FORGED = "forged"


class FeedbackSignal(StrEnum):
    """Operator feedback cue. Each maps to a distinct tone/colour on the scanning device."""

    ADMIT = "admit"
    ALREADY_USED = "already_used"
    WRONG_EVENT = "wrong_event"
    REFUNDED = "refunded"
    INVALID_CODE = "invalid_code"
    FORGED_CODE = "forged_code"
    UNKNOWN_TICKET = "unknown_ticket"
    CHECK_IN_CLOSED = "check_in_closed"
    RETRY = "retry"


def describe(outcome: RedemptionOutcome) -> str:
    """Operator-facing message for an outcome."""
    match outcome:
        case RedemptionOutcome.ACCEPTED:
            return "Ticket validated successfully."
        case RedemptionOutcome.REJECTED_ALREADY_USED:
            return "This ticket has already been used."
        case RedemptionOutcome.REJECTED_WRONG_EVENT:
            return "This ticket is for a different event."
        case RedemptionOutcome.REJECTED_REFUNDED:
            return "This ticket has been refunded and cannot be used."
        case RedemptionOutcome.REJECTED_MALFORMED:
            return "This code is not a ticket code."
        case RedemptionOutcome.REJECTED_FORGED:
            return "This code failed verification."
        case RedemptionOutcome.REJECTED_UNKNOWN_TICKET:
            return "Ticket not found."
        case RedemptionOutcome.REJECTED_CHECK_IN_CLOSED:
            return "Check-in is not currently open for this event."
        case RedemptionOutcome.UNAVAILABLE:
            return "Validation is temporarily unavailable. Please scan again."
        case _:
            t.assert_never(outcome)
