from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI

from checkin.controllers import CheckInController
from checkin.exceptions import UnknownEventError
from checkin.ledger import TicketNotFoundError
from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle, UserDefaultThrottle
from events.controllers.tickets import TicketController

from .exception_handlers import (
    handle_django_validation_error,
    handle_general_exception,
    handle_ticket_not_found_error,
    handle_unknown_event_error,
)

api = NinjaExtraAPI(
    title="Turnstile API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Turnstile check-in API {settings.VERSION}",
    app_name=f"turnstile-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
    throttle=[AnonDefaultThrottle(), UserDefaultThrottle()],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version."""
    return 200, VersionResponse(version=settings.VERSION, demo=settings.DEMO_MODE)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, ResponseOk()


api.register_controllers(
    CheckInController,
    TicketController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    UnknownEventError: handle_unknown_event_error,
    TicketNotFoundError: handle_ticket_not_found_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
