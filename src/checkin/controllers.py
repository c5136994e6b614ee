import typing as t
from uuid import UUID

from django.http import HttpResponse
from ninja import Query, Schema
from ninja.responses import Response
from ninja_extra import api_controller, route
from ninja_jwt.authentication import JWTAuth
from pydantic import Field

from common.controllers import UserAwareController
from common.throttling import ScanThrottle, UserDefaultThrottle
from events.controllers.permissions import GateStaffPermission
from events.models import Event
from events.schema import EventCheckInWindowSchema

from . import schema
from .coordinator import RedemptionCoordinator, RedemptionResult
from .ledger import AttemptPage, get_ledger
from .stats import AttendanceStats, get_attendance_stats

RETRY_AFTER_SECONDS = 1


class AttemptPageQuery(Schema):
    page: int = Field(1, ge=1)
    page_size: int = Field(50, ge=1, le=200)


@api_controller(
    "/checkin/{event_id}",
    auth=JWTAuth(),
    permissions=[GateStaffPermission()],
    tags=["Check-in"],
    throttle=ScanThrottle(),
)
class CheckInController(UserAwareController):
    """Door validation for one event. Open to the organizer and the event's gate staff."""

    def get_one(self, event_id: UUID) -> Event:
        return t.cast(Event, self.get_object_or_exception(Event, pk=event_id))

    @route.get("", url_name="check_in_window", response=EventCheckInWindowSchema, throttle=UserDefaultThrottle())
    def window(self, event_id: UUID) -> EventCheckInWindowSchema:
        """The event's effective check-in window. Stations call this when they start."""
        event = self.get_one(event_id)
        opens, closes = event.check_in_window()
        return EventCheckInWindowSchema(
            id=event.id,
            name=event.name,
            check_in_opens_at=opens,
            check_in_closes_at=closes,
            is_open=event.is_check_in_open(),
        )

    @route.post(
        "/scan",
        url_name="scan_ticket",
        response={200: schema.RedemptionResultSchema, 503: schema.RedemptionResultSchema},
    )
    def scan(self, event_id: UUID, payload: schema.ScanRequestSchema) -> HttpResponse:
        """Validate a scanned code.

        Every decided outcome, accepted or rejected, is a 200. A 503 means the ledger could
        not be reached and nothing was decided: scan again.
        """
        self.get_one(event_id)
        result = RedemptionCoordinator().validate(
            payload.code, event_id, self.validator_identity(), payload.location
        )
        return self._respond(result)

    @route.post(
        "/manual",
        url_name="manual_entry",
        response={200: schema.RedemptionResultSchema, 503: schema.RedemptionResultSchema},
    )
    def manual_entry(self, event_id: UUID, payload: schema.ManualEntryRequestSchema) -> HttpResponse:
        """Validate a typed ticket id or reference. Recorded as a reduced-assurance entry."""
        self.get_one(event_id)
        result = RedemptionCoordinator().validate(
            payload.ticket, event_id, self.validator_identity(), payload.location, manual_entry=True
        )
        return self._respond(result)

    @route.get(
        "/attempts",
        url_name="list_redemption_attempts",
        response=schema.AttemptPageSchema,
        throttle=UserDefaultThrottle(),
    )
    def list_attempts(self, event_id: UUID, params: AttemptPageQuery = Query(...)) -> AttemptPage:  # type: ignore[type-arg]
        """Audit trail of every scan presented against this event, newest first."""
        self.get_one(event_id)
        return get_ledger().list_attempts(event_id, page=params.page, page_size=params.page_size)

    @route.get(
        "/stats",
        url_name="attendance_stats",
        response=schema.AttendanceStatsSchema,
        throttle=UserDefaultThrottle(),
    )
    def stats(self, event_id: UUID) -> AttendanceStats:
        """Attendance numbers. May trail live scans by a few seconds."""
        self.get_one(event_id)
        return get_attendance_stats(event_id)

    @staticmethod
    def _respond(result: RedemptionResult) -> HttpResponse:
        data = schema.RedemptionResultSchema.model_validate(result).model_dump(mode="json")
        if result.outcome.is_transient:
            response = Response(data, status=503)
            response["Retry-After"] = str(RETRY_AFTER_SECONDS)
            return response
        return Response(data, status=200)
