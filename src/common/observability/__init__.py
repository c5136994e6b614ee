"""Observability utilities for Turnstile."""

from .tracing import init_tracing

__all__ = ["init_tracing"]
