"""Tests for attendance statistics."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from checkin.coordinator import RedemptionCoordinator
from checkin.enums import RedemptionOutcome
from checkin.ledger.django_ledger import DjangoLedger
from checkin.stats import get_attendance_stats
from events.models import Event, Ticket, TicketType
from events.service import ticket_service

pytestmark = pytest.mark.django_db


@pytest.fixture
def coordinator() -> RedemptionCoordinator:
    return RedemptionCoordinator(DjangoLedger())


def _redeem(coordinator: RedemptionCoordinator, ticket: Ticket) -> None:
    result = coordinator.validate(ticket_service.scan_code_for(ticket), ticket.event_id, "north-door")
    assert result.accepted


def test_empty_event(event: Event) -> None:
    stats = get_attendance_stats(event.id)

    assert stats.total_tickets == 0
    assert stats.attendance_rate == 0
    assert stats.by_ticket_type == []
    assert stats.attempts_by_outcome == {}


def test_counts_rate_and_breakdown(
    coordinator: RedemptionCoordinator,
    event: Event,
    ticket_type: TicketType,
    vip_ticket_type: TicketType,
) -> None:
    general = [ticket_service.issue_ticket(event, ticket_type, guest_name=f"Guest {n}") for n in range(4)]
    vip = [ticket_service.issue_ticket(event, vip_ticket_type, guest_name=f"VIP {n}") for n in range(2)]
    for ticket in general[:2] + vip[:1]:
        _redeem(coordinator, ticket)
    ticket_service.refund_ticket(general[3])
    coordinator.validate("garbage", event.id, "north-door")

    stats = get_attendance_stats(event.id)

    assert (stats.total_tickets, stats.unused, stats.used, stats.refunded) == (6, 2, 3, 1)
    assert stats.attendance_rate == 50
    assert stats.accepted_last_24h == 3
    assert stats.attempts_by_outcome == {
        RedemptionOutcome.ACCEPTED.value: 3,
        RedemptionOutcome.REJECTED_MALFORMED.value: 1,
    }
    by_type = {row.name: row for row in stats.by_ticket_type}
    assert by_type["General Admission"].sold == 3
    assert by_type["General Admission"].used == 2
    assert by_type["General Admission"].revenue == Decimal("75.00")
    assert by_type["VIP"].sold == 2
    assert by_type["VIP"].used == 1
    assert by_type["VIP"].revenue == Decimal("160.00")


def test_other_events_are_not_counted(
    coordinator: RedemptionCoordinator, ticket: Ticket, other_event_ticket: Ticket
) -> None:
    _redeem(coordinator, other_event_ticket)

    stats = get_attendance_stats(ticket.event_id)

    assert stats.total_tickets == 1
    assert stats.used == 0


def test_accepted_last_24h_window(coordinator: RedemptionCoordinator, ticket: Ticket, guest_ticket: Ticket) -> None:
    _redeem(coordinator, ticket)
    _redeem(coordinator, guest_ticket)

    with freeze_time(timezone.now() + timedelta(hours=25)):
        stats = get_attendance_stats(ticket.event_id)

    assert stats.used == 2
    assert stats.accepted_last_24h == 0


def test_cached_until_someone_is_admitted(
    coordinator: RedemptionCoordinator, ticket: Ticket, guest_ticket: Ticket
) -> None:
    first = get_attendance_stats(ticket.event_id)
    coordinator.validate("garbage", ticket.event_id, "north-door")
    still_cached = get_attendance_stats(ticket.event_id)
    _redeem(coordinator, ticket)
    refreshed = get_attendance_stats(ticket.event_id)

    assert still_cached == first
    assert refreshed.used == 1
    assert refreshed.attempts_by_outcome[RedemptionOutcome.REJECTED_MALFORMED.value] == 1
