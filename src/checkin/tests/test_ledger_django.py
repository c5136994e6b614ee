"""Tests for the database-backed ledger."""

import uuid
from unittest.mock import patch

import pytest
from django.db import OperationalError
from django.utils import timezone

from checkin.enums import RedemptionOutcome
from checkin.exceptions import ImmutableAttemptError
from checkin.ledger import AttemptDraft, LedgerUnavailableError, TicketNotFoundError
from checkin.ledger.django_ledger import DjangoLedger
from checkin.models import RedemptionAttempt
from events.models import Event, Ticket

pytestmark = pytest.mark.django_db

TicketStatus = Ticket.TicketStatus


@pytest.fixture
def django_ledger() -> DjangoLedger:
    return DjangoLedger()


class TestTryMarkUsed:
    def test_accepts_unused_ticket_in_one_statement(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        at = timezone.now()

        result = django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="north-door", location="gate-a", at=at)

        assert result.outcome == RedemptionOutcome.ACCEPTED
        ticket.refresh_from_db()
        assert ticket.status == TicketStatus.USED
        assert ticket.checked_in_by == "north-door"
        assert ticket.checked_in_location == "gate-a"
        assert ticket.checked_in_at == at

    def test_summary_fields(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        result = django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="v", location="", at=timezone.now())

        assert result.ticket is not None
        assert result.ticket.owner_name == "Ada Lovelace"
        assert result.ticket.owner_email == "ada@example.com"
        assert result.ticket.ticket_type_name == "General Admission"
        assert result.ticket.reference == ticket.reference

    def test_already_used_keeps_first_stamp(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="north-door", location="", at=timezone.now())

        result = django_ledger.try_mark_used(
            ticket.id, ticket.event_id, validator="south-door", location="", at=timezone.now()
        )

        assert result.outcome == RedemptionOutcome.REJECTED_ALREADY_USED
        assert result.ticket is not None
        assert result.ticket.checked_in_by == "north-door"

    def test_unknown_ticket(self, django_ledger: DjangoLedger, event: Event) -> None:
        result = django_ledger.try_mark_used(uuid.uuid4(), event.id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_UNKNOWN_TICKET
        assert result.ticket is None

    def test_wrong_event(self, django_ledger: DjangoLedger, ticket: Ticket, other_event: Event) -> None:
        result = django_ledger.try_mark_used(ticket.id, other_event.id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_WRONG_EVENT
        ticket.refresh_from_db()
        assert ticket.status == TicketStatus.UNUSED

    def test_refunded(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        django_ledger.mark_refunded(ticket.id, at=timezone.now())

        result = django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="v", location="", at=timezone.now())

        assert result.outcome == RedemptionOutcome.REJECTED_REFUNDED

    def test_database_error_is_unavailable(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        with patch.object(Ticket.objects, "filter", side_effect=OperationalError("canceling statement due to timeout")):
            with pytest.raises(LedgerUnavailableError):
                django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="v", location="", at=timezone.now())

        ticket.refresh_from_db()
        assert ticket.status == TicketStatus.UNUSED

    def test_missing_read_back_is_unavailable(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        with patch.object(Ticket.objects, "full") as full:
            full.return_value.filter.return_value.first.return_value = None
            with pytest.raises(LedgerUnavailableError, match="vanished"):
                django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="v", location="", at=timezone.now())


class TestMarkRefunded:
    def test_refunds_used_ticket(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        django_ledger.try_mark_used(ticket.id, ticket.event_id, validator="v", location="", at=timezone.now())

        record = django_ledger.mark_refunded(ticket.id, at=timezone.now())

        assert record.status == TicketStatus.REFUNDED
        ticket.refresh_from_db()
        assert ticket.refunded_at is not None

    def test_second_refund_keeps_first_timestamp(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        first_at = timezone.now()
        django_ledger.mark_refunded(ticket.id, at=first_at)
        django_ledger.mark_refunded(ticket.id, at=timezone.now())

        ticket.refresh_from_db()
        assert ticket.refunded_at == first_at

    def test_unknown_ticket(self, django_ledger: DjangoLedger) -> None:
        with pytest.raises(TicketNotFoundError):
            django_ledger.mark_refunded(uuid.uuid4(), at=timezone.now())


class TestGetTicket:
    def test_by_uuid_string_and_reference(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        assert django_ledger.get_ticket(str(ticket.id)).id == ticket.id  # type: ignore[union-attr]
        assert django_ledger.get_ticket(ticket.reference.lower()).id == ticket.id  # type: ignore[union-attr]

    def test_guest_owner_details(self, django_ledger: DjangoLedger, guest_ticket: Ticket) -> None:
        record = django_ledger.get_ticket(guest_ticket.id)

        assert record is not None
        assert record.owner_name == "Grace Hopper"
        assert record.owner_email == "Guest"

    def test_missing(self, django_ledger: DjangoLedger) -> None:
        assert django_ledger.get_ticket(uuid.uuid4()) is None


class TestGetEvent:
    def test_event_record_carries_effective_window(self, django_ledger: DjangoLedger, event: Event) -> None:
        record = django_ledger.get_event(event.id)

        assert record is not None
        assert (record.check_in_opens_at, record.check_in_closes_at) == event.check_in_window()
        assert record.is_check_in_open(timezone.now())


class TestAttempts:
    def test_append_and_list(self, django_ledger: DjangoLedger, ticket: Ticket) -> None:
        stored = django_ledger.append_attempt(
            AttemptDraft(
                event_id=ticket.event_id,
                validator="north-door",
                outcome=RedemptionOutcome.ACCEPTED,
                attempted_at=timezone.now(),
                raw_digest="a" * 64,
                ticket_id=ticket.id,
                ticket_ref=str(ticket.id),
                location="gate-a",
            )
        )

        page = django_ledger.list_attempts(ticket.event_id)

        assert page.total_count == 1
        assert page.items[0].id == stored.id
        assert page.items[0].outcome == RedemptionOutcome.ACCEPTED
        assert not page.has_more

    def test_append_failure_is_unavailable(self, django_ledger: DjangoLedger, event: Event) -> None:
        draft = AttemptDraft(
            event_id=event.id,
            validator="v",
            outcome=RedemptionOutcome.REJECTED_MALFORMED,
            attempted_at=timezone.now(),
            raw_digest="b" * 64,
        )
        with patch.object(RedemptionAttempt.objects, "create", side_effect=OperationalError("disk full")):
            with pytest.raises(LedgerUnavailableError):
                django_ledger.append_attempt(draft)

    def test_row_refused_by_validation_is_unavailable(self, django_ledger: DjangoLedger, event: Event) -> None:
        draft = AttemptDraft(
            event_id=event.id,
            validator="v" * 151,
            outcome=RedemptionOutcome.ACCEPTED,
            attempted_at=timezone.now(),
            raw_digest="c" * 64,
        )

        with pytest.raises(LedgerUnavailableError, match="append_attempt"):
            django_ledger.append_attempt(draft)
        assert not RedemptionAttempt.objects.exists()

    def test_attempts_are_immutable(self, django_ledger: DjangoLedger, event: Event) -> None:
        stored = django_ledger.append_attempt(
            AttemptDraft(
                event_id=event.id,
                validator="v",
                outcome=RedemptionOutcome.REJECTED_MALFORMED,
                attempted_at=timezone.now(),
                raw_digest="c" * 64,
            )
        )
        attempt = RedemptionAttempt.objects.get(pk=stored.id)

        attempt.validator = "someone-else"
        with pytest.raises(ImmutableAttemptError):
            attempt.save()
        with pytest.raises(ImmutableAttemptError):
            attempt.delete()
        with pytest.raises(ImmutableAttemptError):
            RedemptionAttempt.objects.filter(pk=stored.id).update(validator="x")
        with pytest.raises(ImmutableAttemptError):
            RedemptionAttempt.objects.filter(pk=stored.id).delete()
