"""Per-device validator session.

A scanning device sees the same code many times while it sits in the camera frame. The
session drops identical codes inside a short cool-down window before they reach the
coordinator, counts what was scanned and turns every result into an operator cue.

Suppression is a client-side courtesy only: two devices scanning the same ticket both
reach the ledger, which settles the race.
"""

import time
import typing as t
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import httpx
import structlog
from django.conf import settings

from .coordinator import RedemptionCoordinator, RedemptionResult, TicketSummary
from .enums import FeedbackSignal, RedemptionOutcome

logger = structlog.get_logger(__name__)

Listener = t.Callable[[RedemptionResult, FeedbackSignal], None]


@dataclass
class ValidatorSessionState:
    last_code: str | None = None
    last_submitted_at: float | None = None
    scans: int = 0
    suppressed: int = 0
    manual_entries: int = 0
    tallies: Counter[RedemptionOutcome] = field(default_factory=Counter)


def is_suppressed(state: ValidatorSessionState, raw: str, now: float, cooldown: float) -> bool:
    """Whether ``raw`` repeats the last submitted code within the cool-down window."""
    if state.last_code is None or state.last_submitted_at is None:
        return False
    return state.last_code == raw.strip() and now - state.last_submitted_at < cooldown


def note_submission(state: ValidatorSessionState, raw: str, now: float) -> None:
    state.last_code = raw.strip()
    state.last_submitted_at = now


def note_result(state: ValidatorSessionState, result: RedemptionResult) -> None:
    state.scans += 1
    state.tallies[result.outcome] += 1
    if result.manual_entry:
        state.manual_entries += 1


def reset_state(state: ValidatorSessionState) -> None:
    state.last_code = None
    state.last_submitted_at = None
    state.scans = 0
    state.suppressed = 0
    state.manual_entries = 0
    state.tallies.clear()


def feedback_for(result: RedemptionResult) -> FeedbackSignal:
    """The operator cue for a result. Every outcome has its own."""
    match result.outcome:
        case RedemptionOutcome.ACCEPTED:
            return FeedbackSignal.ADMIT
        case RedemptionOutcome.REJECTED_ALREADY_USED:
            return FeedbackSignal.ALREADY_USED
        case RedemptionOutcome.REJECTED_WRONG_EVENT:
            return FeedbackSignal.WRONG_EVENT
        case RedemptionOutcome.REJECTED_REFUNDED:
            return FeedbackSignal.REFUNDED
        case RedemptionOutcome.REJECTED_MALFORMED:
            return FeedbackSignal.INVALID_CODE
        case RedemptionOutcome.REJECTED_FORGED:
            return FeedbackSignal.FORGED_CODE
        case RedemptionOutcome.REJECTED_UNKNOWN_TICKET:
            return FeedbackSignal.UNKNOWN_TICKET
        case RedemptionOutcome.REJECTED_CHECK_IN_CLOSED:
            return FeedbackSignal.CHECK_IN_CLOSED
        case RedemptionOutcome.UNAVAILABLE:
            return FeedbackSignal.RETRY
        case _:
            t.assert_never(result.outcome)


class Submitter(t.Protocol):
    """Delivers one submission to a coordinator, local or remote."""

    def submit(
        self,
        raw: str,
        *,
        event_id: UUID,
        validator: str,
        location: str,
        manual_entry: bool,
    ) -> RedemptionResult: ...


class CoordinatorSubmitter:
    """Submits to an in-process coordinator."""

    def __init__(self, coordinator: RedemptionCoordinator | None = None) -> None:
        self.coordinator = coordinator or RedemptionCoordinator()

    def submit(
        self,
        raw: str,
        *,
        event_id: UUID,
        validator: str,
        location: str,
        manual_entry: bool,
    ) -> RedemptionResult:
        return self.coordinator.validate(raw, event_id, validator, location, manual_entry=manual_entry)


class HttpSubmitter:
    """Submits to a remote Turnstile API with a JWT access token.

    The server derives the validator identity from the token; ``validator`` is only used
    to label results produced locally. Timeouts, connection failures, throttling (429) and
    5xx responses become UNAVAILABLE results; other 4xx responses (bad token, unknown event)
    are raised.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self.client.headers["Authorization"] = f"Bearer {access_token}"

    def close(self) -> None:
        self.client.close()

    def submit(
        self,
        raw: str,
        *,
        event_id: UUID,
        validator: str,
        location: str,
        manual_entry: bool,
    ) -> RedemptionResult:
        if manual_entry:
            path, body = f"/api/checkin/{event_id}/manual", {"ticket": raw}
        else:
            path, body = f"/api/checkin/{event_id}/scan", {"code": raw}
        if location:
            body["location"] = location

        try:
            response = self.client.post(path, json=body)
        except httpx.TransportError as exc:
            logger.warning("scan_submit_failed", event_id=str(event_id), error=str(exc))
            return self._unavailable(event_id, validator, location, manual_entry)

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            logger.warning(
                "scan_submit_throttled", event_id=str(event_id), retry_after=response.headers.get("Retry-After")
            )
            return self._unavailable(event_id, validator, location, manual_entry)
        if response.status_code >= 500:
            logger.warning("scan_submit_server_error", event_id=str(event_id), status_code=response.status_code)
            return self._unavailable(event_id, validator, location, manual_entry)
        response.raise_for_status()
        return result_from_json(response.json())

    @staticmethod
    def _unavailable(event_id: UUID, validator: str, location: str, manual_entry: bool) -> RedemptionResult:
        return RedemptionResult(
            outcome=RedemptionOutcome.UNAVAILABLE,
            event_id=event_id,
            validator=validator,
            attempted_at=datetime.now().astimezone(),
            location=location,
            manual_entry=manual_entry,
            audit_recorded=False,
        )


def result_from_json(data: dict[str, t.Any]) -> RedemptionResult:
    """Rebuild a RedemptionResult from the API's JSON response."""
    summary_data = data.get("ticket_summary")
    summary = None
    if summary_data:
        summary = TicketSummary(
            ticket_id=UUID(summary_data["ticket_id"]),
            reference=summary_data["reference"],
            owner_name=summary_data["owner_name"],
            owner_email=summary_data["owner_email"],
            ticket_type_name=summary_data["ticket_type_name"],
            price=Decimal(str(summary_data["price"])),
            purchased_at=datetime.fromisoformat(summary_data["purchased_at"]),
            prior_validator=summary_data.get("prior_validator"),
            prior_validated_at=(
                datetime.fromisoformat(summary_data["prior_validated_at"])
                if summary_data.get("prior_validated_at")
                else None
            ),
            prior_location=summary_data.get("prior_location"),
        )
    return RedemptionResult(
        outcome=RedemptionOutcome(data["outcome"]),
        event_id=UUID(data["event_id"]),
        validator=data["validator"],
        attempted_at=datetime.fromisoformat(data["attempted_at"]),
        location=data.get("location") or "",
        manual_entry=data.get("manual_entry", False),
        ticket_summary=summary,
        audit_recorded=data.get("audit_recorded", True),
        retry_collision=data.get("retry_collision", False),
        attempt_id=UUID(data["attempt_id"]) if data.get("attempt_id") else None,
    )


class ValidatorSession:
    """One scanning device's session against one event."""

    def __init__(
        self,
        submitter: Submitter,
        event_id: UUID,
        validator: str,
        location: str = "",
        *,
        cooldown: float | None = None,
        clock: t.Callable[[], float] = time.monotonic,
    ) -> None:
        self.submitter = submitter
        self.event_id = event_id
        self.validator = validator
        self.location = location
        self.cooldown = settings.CHECKIN_SCAN_COOLDOWN_SECONDS if cooldown is None else cooldown
        self.clock = clock
        self.state = ValidatorSessionState()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> t.Callable[[], None]:
        """Register a result listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def scan(self, raw: str) -> RedemptionResult | None:
        """Submit a scanned code, or return None when it repeats the last one within the cool-down."""
        now = self.clock()
        if is_suppressed(self.state, raw, now, self.cooldown):
            self.state.suppressed += 1
            return None
        note_submission(self.state, raw, now)
        return self._submit(raw, manual_entry=False)

    def enter_manually(self, identifier: str) -> RedemptionResult:
        """Submit a typed ticket identifier. Never suppressed; recorded as reduced assurance."""
        return self._submit(identifier, manual_entry=True)

    def reset(self) -> None:
        reset_state(self.state)

    def _submit(self, raw: str, *, manual_entry: bool) -> RedemptionResult:
        result = self.submitter.submit(
            raw,
            event_id=self.event_id,
            validator=self.validator,
            location=self.location,
            manual_entry=manual_entry,
        )
        note_result(self.state, result)
        signal = feedback_for(result)
        for listener in list(self._listeners):
            listener(result, signal)
        return result
