"""Tests for the in-memory ledger backend."""

import threading
import uuid
from datetime import timedelta

import pytest
from django.test import override_settings
from django.utils import timezone

from checkin.enums import RedemptionOutcome
from checkin.ledger import AttemptDraft, LedgerUnavailableError, TicketNotFoundError, get_ledger
from checkin.ledger.memory import InMemoryLedger
from events.models import Ticket

TicketStatus = Ticket.TicketStatus


@pytest.fixture
def memory_ledger() -> InMemoryLedger:
    return InMemoryLedger(lock_timeout=0.5)


def _draft(event_id: uuid.UUID, outcome: RedemptionOutcome = RedemptionOutcome.ACCEPTED, **kwargs: object) -> AttemptDraft:
    return AttemptDraft(
        event_id=event_id,
        validator="north-door",
        outcome=outcome,
        attempted_at=kwargs.pop("attempted_at", timezone.now()),  # type: ignore[arg-type]
        raw_digest="0" * 64,
        **kwargs,  # type: ignore[arg-type]
    )


class TestTryMarkUsed:
    def test_unused_ticket_is_accepted_and_stamped(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        ticket = memory_ledger.add_ticket(event.id)
        at = timezone.now()

        result = memory_ledger.try_mark_used(ticket.id, event.id, validator="north-door", location="gate-a", at=at)

        assert result.outcome == RedemptionOutcome.ACCEPTED
        assert result.ticket is not None
        assert result.ticket.status == TicketStatus.USED
        assert result.ticket.checked_in_by == "north-door"
        assert result.ticket.checked_in_location == "gate-a"
        assert result.ticket.checked_in_at == at

    def test_second_call_is_already_used_and_keeps_first_stamp(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        ticket = memory_ledger.add_ticket(event.id)
        memory_ledger.try_mark_used(ticket.id, event.id, validator="north-door", location="", at=timezone.now())

        result = memory_ledger.try_mark_used(ticket.id, event.id, validator="south-door", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_ALREADY_USED
        assert result.ticket is not None
        assert result.ticket.checked_in_by == "north-door"

    def test_unknown_ticket(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")

        result = memory_ledger.try_mark_used(uuid.uuid4(), event.id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_UNKNOWN_TICKET
        assert result.ticket is None

    def test_wrong_event_leaves_status_unchanged(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        other = memory_ledger.add_event("Fair")
        ticket = memory_ledger.add_ticket(event.id)

        result = memory_ledger.try_mark_used(ticket.id, other.id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_WRONG_EVENT
        assert memory_ledger.get_ticket(ticket.id).status == TicketStatus.UNUSED  # type: ignore[union-attr]

    def test_wrong_event_is_checked_before_refund(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        other = memory_ledger.add_event("Fair")
        ticket = memory_ledger.add_ticket(event.id, status=TicketStatus.REFUNDED)

        result = memory_ledger.try_mark_used(ticket.id, other.id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_WRONG_EVENT

    @pytest.mark.parametrize("status", [TicketStatus.UNUSED, TicketStatus.USED])
    def test_refund_blocks_redemption(self, memory_ledger: InMemoryLedger, status: str) -> None:
        event = memory_ledger.add_event("Gala")
        ticket = memory_ledger.add_ticket(event.id, status=status)
        memory_ledger.mark_refunded(ticket.id, at=timezone.now())

        result = memory_ledger.try_mark_used(ticket.id, event.id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_REFUNDED

    def test_contended_lock_is_unavailable(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        ticket = memory_ledger.add_ticket(event.id)
        memory_ledger.lock_timeout = 0.05
        held = threading.Event()
        release = threading.Event()

        def hold() -> None:
            with memory_ledger._locked():
                held.set()
                release.wait(2)

        holder = threading.Thread(target=hold)
        holder.start()
        held.wait(2)
        try:
            with pytest.raises(LedgerUnavailableError):
                memory_ledger.try_mark_used(ticket.id, event.id, validator="v", location="", at=timezone.now())
        finally:
            release.set()
            holder.join()

        assert memory_ledger.get_ticket(ticket.id).status == TicketStatus.UNUSED  # type: ignore[union-attr]


class TestLookups:
    def test_get_ticket_by_reference_is_case_insensitive(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        ticket = memory_ledger.add_ticket(event.id, reference="TKT-ABCD-EFGH")

        assert memory_ledger.get_ticket("tkt-abcd-efgh") == ticket
        assert memory_ledger.get_ticket(str(ticket.id)) == ticket

    def test_get_missing(self, memory_ledger: InMemoryLedger) -> None:
        assert memory_ledger.get_ticket(uuid.uuid4()) is None
        assert memory_ledger.get_ticket("TKT-0000-0000") is None
        assert memory_ledger.get_event(uuid.uuid4()) is None

    def test_event_window(self, memory_ledger: InMemoryLedger) -> None:
        now = timezone.now()
        event = memory_ledger.add_event(
            "Gala", check_in_opens_at=now - timedelta(hours=1), check_in_closes_at=now + timedelta(hours=1)
        )

        assert event.is_check_in_open(now)
        assert not event.is_check_in_open(now + timedelta(hours=2))


class TestRefund:
    def test_refund_is_idempotent(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        ticket = memory_ledger.add_ticket(event.id)

        first = memory_ledger.mark_refunded(ticket.id, at=timezone.now())
        second = memory_ledger.mark_refunded(ticket.id, at=timezone.now())

        assert first.status == second.status == TicketStatus.REFUNDED

    def test_refund_unknown_ticket(self, memory_ledger: InMemoryLedger) -> None:
        with pytest.raises(TicketNotFoundError):
            memory_ledger.mark_refunded(uuid.uuid4(), at=timezone.now())


class TestAttempts:
    def test_list_attempts_is_newest_first_and_paginated(self, memory_ledger: InMemoryLedger) -> None:
        event = memory_ledger.add_event("Gala")
        other = memory_ledger.add_event("Fair")
        start = timezone.now()
        for minute in range(5):
            memory_ledger.append_attempt(_draft(event.id, attempted_at=start + timedelta(minutes=minute)))
        memory_ledger.append_attempt(_draft(other.id))

        first_page = memory_ledger.list_attempts(event.id, page=1, page_size=2)
        last_page = memory_ledger.list_attempts(event.id, page=3, page_size=2)

        assert first_page.total_count == 5
        assert first_page.total_pages == 3
        assert first_page.has_more
        assert [a.attempted_at for a in first_page.items] == [
            start + timedelta(minutes=4),
            start + timedelta(minutes=3),
        ]
        assert len(last_page.items) == 1
        assert not last_page.has_more


@override_settings(CHECKIN_LEDGER_BACKEND="checkin.ledger.memory.InMemoryLedger")
def test_get_ledger_returns_one_configured_instance() -> None:
    ledger = get_ledger()

    assert isinstance(ledger, InMemoryLedger)
    assert get_ledger() is ledger
