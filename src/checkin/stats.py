"""Attendance statistics: a read-side projection over tickets and redemption attempts.

Numbers here may trail the write path by up to ``CHECKIN_STATS_CACHE_SECONDS``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Q, Sum
from django.utils import timezone

from events.models import Ticket

from .enums import RedemptionOutcome
from .models import RedemptionAttempt

TicketStatus = Ticket.TicketStatus


@dataclass(frozen=True)
class TicketTypeStats:
    name: str
    sold: int
    used: int
    revenue: Decimal


@dataclass(frozen=True)
class AttendanceStats:
    event_id: UUID
    total_tickets: int
    unused: int
    used: int
    refunded: int
    attendance_rate: int
    accepted_last_24h: int
    generated_at: datetime
    by_ticket_type: list[TicketTypeStats] = field(default_factory=list)
    attempts_by_outcome: dict[str, int] = field(default_factory=dict)


def _cache_key(event_id: UUID) -> str:
    return f"checkin:attendance-stats:{event_id}"


def invalidate_attendance_stats(event_id: UUID) -> None:
    cache.delete(_cache_key(event_id))


def get_attendance_stats(event_id: UUID) -> AttendanceStats:
    """Attendance numbers for one event, cached briefly."""
    key = _cache_key(event_id)
    stats: AttendanceStats | None = cache.get(key)
    if stats is None:
        stats = _compute(event_id, timezone.now())
        cache.set(key, stats, settings.CHECKIN_STATS_CACHE_SECONDS)
    return stats


def _compute(event_id: UUID, now: datetime) -> AttendanceStats:
    tickets = Ticket.objects.filter(event_id=event_id)
    by_status = tickets.aggregate(
        total=Count("id"),
        unused=Count("id", filter=Q(status=TicketStatus.UNUSED)),
        used=Count("id", filter=Q(status=TicketStatus.USED)),
        refunded=Count("id", filter=Q(status=TicketStatus.REFUNDED)),
    )
    by_type = [
        TicketTypeStats(
            name=row["ticket_type__name"],
            sold=row["sold"],
            used=row["used"],
            revenue=row["revenue"] or Decimal("0"),
        )
        for row in tickets.exclude(status=TicketStatus.REFUNDED)
        .values("ticket_type__name")
        .annotate(
            sold=Count("id"),
            used=Count("id", filter=Q(status=TicketStatus.USED)),
            revenue=Sum("price_paid"),
        )
        .order_by("ticket_type__name")
    ]
    attempts = RedemptionAttempt.objects.filter(event_id=event_id)
    attempts_by_outcome = {
        row["outcome"]: row["count"] for row in attempts.values("outcome").annotate(count=Count("id")).order_by()
    }
    accepted_last_24h = attempts.filter(
        outcome=RedemptionOutcome.ACCEPTED, attempted_at__gte=now - timedelta(hours=24)
    ).count()

    total = by_status["total"]
    return AttendanceStats(
        event_id=event_id,
        total_tickets=total,
        unused=by_status["unused"],
        used=by_status["used"],
        refunded=by_status["refunded"],
        attendance_rate=round(by_status["used"] / total * 100) if total else 0,
        accepted_last_24h=accepted_last_24h,
        generated_at=now,
        by_ticket_type=by_type,
        attempts_by_outcome=attempts_by_outcome,
    )
