"""Redemption ledger: durable ticket status plus the append-only attempt history."""

import functools

from django.conf import settings
from django.utils.module_loading import import_string

from .base import (
    AttemptDraft,
    AttemptPage,
    AttemptRecord,
    EventRecord,
    Ledger,
    LedgerUnavailableError,
    MarkResult,
    TicketNotFoundError,
    TicketRecord,
)

__all__ = [
    "AttemptDraft",
    "AttemptPage",
    "AttemptRecord",
    "EventRecord",
    "Ledger",
    "LedgerUnavailableError",
    "MarkResult",
    "TicketNotFoundError",
    "TicketRecord",
    "get_ledger",
]


@functools.cache
def _load(path: str) -> Ledger:
    return import_string(path)()  # type: ignore[no-any-return]


def get_ledger() -> Ledger:
    """The configured ledger. One instance per backend path per process."""
    return _load(settings.CHECKIN_LEDGER_BACKEND)
