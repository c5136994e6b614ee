import sys
import typing as t
from uuid import UUID

import httpx
import structlog
from django.core.management.base import BaseCommand, CommandError, CommandParser

from checkin.coordinator import VALIDATOR_MAX_LENGTH, RedemptionResult
from checkin.enums import FeedbackSignal
from checkin.exceptions import UnknownEventError
from checkin.session import CoordinatorSubmitter, HttpSubmitter, Submitter, ValidatorSession

logger = structlog.get_logger(__name__)

MANUAL_PREFIX = "manual:"
RESET_COMMAND = "!reset"

# Number of terminal bells per cue, so staff can tell outcomes apart without looking.
BELLS: dict[FeedbackSignal, int] = {
    FeedbackSignal.ADMIT: 1,
    FeedbackSignal.ALREADY_USED: 2,
    FeedbackSignal.WRONG_EVENT: 3,
    FeedbackSignal.REFUNDED: 4,
    FeedbackSignal.CHECK_IN_CLOSED: 5,
    FeedbackSignal.UNKNOWN_TICKET: 6,
    FeedbackSignal.INVALID_CODE: 7,
    FeedbackSignal.FORGED_CODE: 8,
    FeedbackSignal.RETRY: 0,
}


class Command(BaseCommand):
    """Run a scanning station on this terminal.

    Reads one code per line from stdin, which is what keyboard-wedge barcode readers
    produce. Lines starting with ``manual:`` are typed ticket ids or references and are
    recorded as manual entries; ``!reset`` restarts the session counters.
    """

    help = "Run a ticket scanning station reading codes from stdin."
    stealth_options = ("stdin",)

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("event_id", type=UUID, help="Event being checked in.")
        parser.add_argument("--validator", required=True, help="Identity recorded against every scan.")
        parser.add_argument("--location", default="", help="Gate or door label, e.g. 'north-gate'.")
        parser.add_argument("--cooldown", type=float, default=None, help="Duplicate suppression window in seconds.")
        parser.add_argument("--remote", default=None, help="Base URL of a remote Turnstile API.")
        parser.add_argument("--token", default=None, help="JWT access token for --remote.")
        parser.add_argument("--no-bell", action="store_true", help="Do not ring the terminal bell.")

    def handle(self, *args: t.Any, **options: t.Any) -> None:
        if not options["validator"] or len(options["validator"]) > VALIDATOR_MAX_LENGTH:
            raise CommandError(f"--validator must be 1 to {VALIDATOR_MAX_LENGTH} characters.")
        submitter = self._submitter(options)
        session = ValidatorSession(
            submitter,
            options["event_id"],
            options["validator"],
            options["location"],
            cooldown=options["cooldown"],
        )
        ring = not options["no_bell"]
        session.subscribe(lambda result, signal: self._show(result, signal, ring=ring))
        logger.info(
            "scanner_started",
            event_id=str(options["event_id"]),
            validator=options["validator"],
            location=options["location"],
            remote=options["remote"],
        )

        stdin = options.get("stdin") or sys.stdin
        try:
            for line in stdin:
                self._handle_line(session, line.strip())
        except UnknownEventError as exc:
            raise CommandError(str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            raise CommandError(f"Remote API refused the scan: HTTP {exc.response.status_code}") from exc
        finally:
            if isinstance(submitter, HttpSubmitter):
                submitter.close()

        self._summary(session)

    def _submitter(self, options: dict[str, t.Any]) -> Submitter:
        if options["remote"]:
            if not options["token"]:
                raise CommandError("--token is required with --remote.")
            return HttpSubmitter(options["remote"], options["token"])
        return CoordinatorSubmitter()

    def _handle_line(self, session: ValidatorSession, line: str) -> None:
        if not line:
            return
        if line == RESET_COMMAND:
            session.reset()
            self.stdout.write("Session reset.")
            return
        if line.lower().startswith(MANUAL_PREFIX):
            session.enter_manually(line[len(MANUAL_PREFIX) :])
            return
        if session.scan(line) is None:
            self.stdout.write(self.style.NOTICE("(duplicate scan ignored)"))

    def _show(self, result: RedemptionResult, signal: FeedbackSignal, *, ring: bool) -> None:
        parts = [f"[{signal.value.upper()}]", result.message]
        if result.manual_entry:
            parts.insert(1, "[MANUAL ENTRY]")
        if summary := result.ticket_summary:
            parts.append(f"{summary.owner_name} / {summary.ticket_type_name} / {summary.reference}")
            if summary.prior_validator:
                prior = f"previously validated by {summary.prior_validator}"
                if summary.prior_location:
                    prior += f" at {summary.prior_location}"
                if result.retry_collision:
                    prior += " (likely this station's own retry)"
                parts.append(prior)
        if not result.audit_recorded and not result.outcome.is_transient:
            parts.append("(audit pending)")
        line = " ".join(parts)

        match signal:
            case FeedbackSignal.ADMIT:
                styled = self.style.SUCCESS(line)
            case FeedbackSignal.RETRY:
                styled = self.style.WARNING(line)
            case _:
                styled = self.style.ERROR(line)
        bells = "\a" * BELLS[signal] if ring else ""
        self.stdout.write(styled + bells)

    def _summary(self, session: ValidatorSession) -> None:
        state = session.state
        self.stdout.write(
            f"Scans: {state.scans}  manual: {state.manual_entries}  duplicates ignored: {state.suppressed}"
        )
        for outcome, count in sorted(state.tallies.items()):
            self.stdout.write(f"  {outcome.label}: {count}")
