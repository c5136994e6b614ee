"""Observability middleware for context enrichment."""

import typing as t
import uuid

import structlog
from django.http import HttpRequest, HttpResponse
from opentelemetry import trace

SCANNER_DEVICE_HEADER = "X-Scanner-Device"


class StructlogContextMiddleware:
    """Enriches structlog context with request metadata.

    Binds request_id, path, client IP, the authenticated user and, for scanning
    stations, the device label so every redemption log line can be traced back
    to the gate it came from.
    """

    def __init__(self, get_response: t.Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()

        context: dict[str, t.Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.path,
            "ip_address": self._get_client_ip(request),
        }

        span = trace.get_current_span()
        if span and span.get_span_context().is_valid:
            context["trace_id"] = format(span.get_span_context().trace_id, "032x")

        if hasattr(request, "user") and request.user.is_authenticated:
            context["user_id"] = str(request.user.pk)

        if device := request.headers.get(SCANNER_DEVICE_HEADER):
            context["scanner_device"] = device[:64]

        structlog.contextvars.bind_contextvars(**context)

        response = self.get_response(request)
        response["X-Request-ID"] = request_id

        structlog.contextvars.clear_contextvars()
        return response

    def _get_client_ip(self, request: HttpRequest) -> str:
        """Extract client IP address, preferring the first X-Forwarded-For hop."""
        x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
        if x_forwarded_for:
            return str(x_forwarded_for.split(",")[0].strip())
        return str(request.META.get("REMOTE_ADDR", "unknown"))
