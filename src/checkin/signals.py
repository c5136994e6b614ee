import typing as t

from django.dispatch import Signal, receiver

from .enums import RedemptionOutcome
from .stats import invalidate_attendance_stats

# Sent once per decided redemption with ``result=RedemptionResult``.
redemption_recorded = Signal()


@receiver(redemption_recorded)
def drop_stats_on_admission(sender: t.Any, result: t.Any, **kwargs: t.Any) -> None:
    """Attendance numbers only move when someone is let in."""
    if result.outcome == RedemptionOutcome.ACCEPTED:
        invalidate_attendance_stats(result.event_id)
