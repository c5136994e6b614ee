"""Redemption coordinator: one scan submission, decided and recorded in a single pass.

The only place a ticket's "has this been used" answer is decided is
``Ledger.try_mark_used``; everything here is the plumbing around that call:
decoding, resolving bare identifiers, scoping to the presenting event, the
check-in window, the audit row and the response.
"""

import hashlib
import typing as t
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from django.utils import timezone
from opentelemetry import trace

from . import codec
from .enums import DecodeError, RedemptionOutcome, describe
from .exceptions import UnknownEventError
from .ledger import AttemptDraft, Ledger, LedgerUnavailableError, TicketRecord, get_ledger
from .ledger.base import TicketStatus
from .signals import redemption_recorded

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

VALIDATOR_MAX_LENGTH = 150
LOCATION_MAX_LENGTH = 64
TICKET_REF_MAX_LENGTH = 64


@dataclass(frozen=True)
class TicketSummary:
    """What the operator sees about the ticket on ACCEPTED and REJECTED_ALREADY_USED."""

    ticket_id: UUID
    reference: str
    owner_name: str
    owner_email: str
    ticket_type_name: str
    price: Decimal
    purchased_at: datetime
    prior_validator: str | None = None
    prior_validated_at: datetime | None = None
    prior_location: str | None = None

    @classmethod
    def accepted(cls, ticket: TicketRecord) -> "TicketSummary":
        return cls(
            ticket_id=ticket.id,
            reference=ticket.reference,
            owner_name=ticket.owner_name,
            owner_email=ticket.owner_email or "Guest",
            ticket_type_name=ticket.ticket_type_name,
            price=ticket.price,
            purchased_at=ticket.purchased_at,
        )

    @classmethod
    def already_used(cls, ticket: TicketRecord) -> "TicketSummary":
        return replace(
            cls.accepted(ticket),
            prior_validator=ticket.checked_in_by or None,
            prior_validated_at=ticket.checked_in_at,
            prior_location=ticket.checked_in_location or None,
        )


@dataclass(frozen=True)
class RedemptionResult:
    outcome: RedemptionOutcome
    event_id: UUID
    validator: str
    attempted_at: datetime
    location: str = ""
    manual_entry: bool = False
    ticket_summary: TicketSummary | None = None
    audit_recorded: bool = True
    retry_collision: bool = False
    attempt_id: UUID | None = None

    @property
    def message(self) -> str:
        return describe(self.outcome)

    @property
    def accepted(self) -> bool:
        return self.outcome == RedemptionOutcome.ACCEPTED


@dataclass(frozen=True)
class _Decision:
    outcome: RedemptionOutcome
    ticket_ref: str = ""
    ticket: TicketRecord | None = None


def digest(raw: str) -> str:
    """SHA-256 of the raw scanned text. The raw text itself is never stored or logged."""
    return hashlib.sha256(raw.encode("utf-8", errors="surrogatepass")).hexdigest()


class RedemptionCoordinator:
    """Adjudicates scan submissions against a ledger.

    Stateless between calls; safe to share across threads and requests.
    """

    def __init__(self, ledger: Ledger | None = None, clock: t.Callable[[], datetime] = timezone.now) -> None:
        self.ledger = ledger if ledger is not None else get_ledger()
        self.clock = clock

    def validate(
        self,
        raw: str,
        event_id: UUID,
        validator: str,
        location: str | None = None,
        *,
        manual_entry: bool = False,
    ) -> RedemptionResult:
        """Decide one submission.

        Business and structural rejections come back as outcomes. Ledger failures come back
        as ``UNAVAILABLE`` and write nothing.

        Raises:
            UnknownEventError: the presenting event does not exist.
            ValueError: the validator identity is empty or longer than the audit trail stores.
        """
        if not validator or len(validator) > VALIDATOR_MAX_LENGTH:
            raise ValueError(f"Validator identity must be 1 to {VALIDATOR_MAX_LENGTH} characters.")
        location = (location or "").strip()[:LOCATION_MAX_LENGTH]
        raw_digest = digest(raw)
        at = self.clock()
        log = logger.bind(
            event_id=str(event_id),
            validator=validator,
            location=location,
            manual_entry=manual_entry,
            raw_digest=raw_digest,
        )

        with tracer.start_as_current_span("checkin.validate") as span:
            span.set_attribute("checkin.event_id", str(event_id))
            span.set_attribute("checkin.manual_entry", manual_entry)
            try:
                decision = self._decide(raw, event_id, validator, location, at, manual_entry=manual_entry)
            except LedgerUnavailableError as exc:
                span.set_attribute("checkin.outcome", RedemptionOutcome.UNAVAILABLE.value)
                log.warning("redemption_unavailable", error=str(exc))
                return RedemptionResult(
                    outcome=RedemptionOutcome.UNAVAILABLE,
                    event_id=event_id,
                    validator=validator,
                    attempted_at=at,
                    location=location,
                    manual_entry=manual_entry,
                    audit_recorded=False,
                )
            span.set_attribute("checkin.outcome", decision.outcome.value)

            draft = AttemptDraft(
                event_id=event_id,
                validator=validator,
                outcome=decision.outcome,
                attempted_at=at,
                raw_digest=raw_digest,
                ticket_id=decision.ticket.id if decision.ticket else None,
                ticket_ref=decision.ticket_ref[:TICKET_REF_MAX_LENGTH],
                location=location,
                manual_entry=manual_entry,
            )
            attempt_id, audit_recorded = self._record(draft, log)

        result = RedemptionResult(
            outcome=decision.outcome,
            event_id=event_id,
            validator=validator,
            attempted_at=at,
            location=location,
            manual_entry=manual_entry,
            ticket_summary=self._summary(decision),
            audit_recorded=audit_recorded,
            retry_collision=self._is_retry_collision(decision, validator, location),
            attempt_id=attempt_id,
        )
        self._log_result(log, result)
        for receiver, response in redemption_recorded.send_robust(sender=self.__class__, result=result):
            if isinstance(response, Exception):
                log.error(
                    "redemption_receiver_failed",
                    receiver=getattr(receiver, "__qualname__", repr(receiver)),
                    outcome=result.outcome.value,
                    error=str(response),
                    error_type=type(response).__name__,
                )
        return result

    def _decide(
        self,
        raw: str,
        event_id: UUID,
        validator: str,
        location: str,
        at: datetime,
        *,
        manual_entry: bool,
    ) -> _Decision:
        event = self.ledger.get_event(event_id)
        if event is None:
            raise UnknownEventError(event_id)

        resolved: TicketRecord | None = None
        decoded = codec.decode_manual(raw) if manual_entry else codec.decode(raw)
        match decoded:
            case codec.DecodeFailure(error=DecodeError.FORGED):
                return _Decision(RedemptionOutcome.REJECTED_FORGED)
            case codec.DecodeFailure():
                return _Decision(RedemptionOutcome.REJECTED_MALFORMED)
            case codec.ScanPayload(ticket_id=ticket_id, event_id=claimed_event_id):
                ticket_ref = str(ticket_id)
                if claimed_event_id != event_id:
                    return _Decision(RedemptionOutcome.REJECTED_WRONG_EVENT, ticket_ref)
            case codec.BareTicketId(identifier=identifier):
                ticket_ref = identifier
                resolved = self.ledger.get_ticket(identifier)
                if resolved is None:
                    return _Decision(RedemptionOutcome.REJECTED_UNKNOWN_TICKET, ticket_ref)
                if resolved.event_id != event_id:
                    return _Decision(RedemptionOutcome.REJECTED_WRONG_EVENT, ticket_ref, resolved)
                ticket_id = resolved.id
            case _:
                t.assert_never(decoded)

        if not event.is_check_in_open(at):
            # A refund is final whether or not the window is open.
            current = resolved or self.ledger.get_ticket(ticket_id)
            if current is not None and current.event_id == event_id and current.status == TicketStatus.REFUNDED:
                return _Decision(RedemptionOutcome.REJECTED_REFUNDED, ticket_ref, current)
            return _Decision(RedemptionOutcome.REJECTED_CHECK_IN_CLOSED, ticket_ref, resolved)

        marked = self.ledger.try_mark_used(ticket_id, event_id, validator=validator, location=location, at=at)
        return _Decision(marked.outcome, ticket_ref, marked.ticket)

    def _record(self, draft: AttemptDraft, log: structlog.stdlib.BoundLogger) -> tuple[UUID | None, bool]:
        try:
            attempt = self.ledger.append_attempt(draft)
        except LedgerUnavailableError as exc:
            # The decision already stands; the gap is repaired in the background.
            log.error("redemption_audit_gap", outcome=draft.outcome.value, error=str(exc))
            _queue_audit_repair(draft, log)
            return None, False
        return attempt.id, True

    @staticmethod
    def _summary(decision: _Decision) -> TicketSummary | None:
        if decision.ticket is None:
            return None
        match decision.outcome:
            case RedemptionOutcome.ACCEPTED:
                return TicketSummary.accepted(decision.ticket)
            case RedemptionOutcome.REJECTED_ALREADY_USED:
                return TicketSummary.already_used(decision.ticket)
            case _:
                return None

    @staticmethod
    def _is_retry_collision(decision: _Decision, validator: str, location: str) -> bool:
        """Same validator at the same spot hitting an already-used ticket: most likely its own retry."""
        if decision.outcome != RedemptionOutcome.REJECTED_ALREADY_USED or decision.ticket is None:
            return False
        return decision.ticket.checked_in_by == validator and decision.ticket.checked_in_location == location

    @staticmethod
    def _log_result(log: structlog.stdlib.BoundLogger, result: RedemptionResult) -> None:
        summary = result.ticket_summary
        ticket_id = str(summary.ticket_id) if summary else None
        match result.outcome:
            case RedemptionOutcome.ACCEPTED:
                log.info("ticket_redeemed", ticket_id=ticket_id, audit_recorded=result.audit_recorded)
            case RedemptionOutcome.REJECTED_ALREADY_USED:
                log.info(
                    "ticket_already_used",
                    ticket_id=ticket_id,
                    prior_validator=summary.prior_validator if summary else None,
                    retry_collision=result.retry_collision,
                )
            case RedemptionOutcome.REJECTED_FORGED:
                log.warning("ticket_code_forged")
            case _:
                log.info("ticket_rejected", outcome=result.outcome.value)


def _queue_audit_repair(draft: AttemptDraft, log: structlog.stdlib.BoundLogger) -> None:
    from .tasks import record_redemption_attempt

    try:
        record_redemption_attempt.delay(
            event_id=str(draft.event_id),
            validator=draft.validator,
            outcome=draft.outcome.value,
            attempted_at=draft.attempted_at.isoformat(),
            raw_digest=draft.raw_digest,
            ticket_id=str(draft.ticket_id) if draft.ticket_id else None,
            ticket_ref=draft.ticket_ref,
            location=draft.location,
            manual_entry=draft.manual_entry,
        )
    except Exception:
        # The periodic reconciliation still covers accepted tickets.
        log.exception("redemption_audit_requeue_failed", outcome=draft.outcome.value)
