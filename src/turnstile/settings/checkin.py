"""Check-in (ticket redemption) settings."""

from decouple import config

from .base import SECRET_KEY

# Key material for the scan code integrity token. Rotating it invalidates every issued code.
CHECKIN_CODE_SECRET: str = config("CHECKIN_CODE_SECRET", default=SECRET_KEY)

# Dotted path to the Ledger implementation used by the coordinator.
CHECKIN_LEDGER_BACKEND: str = config("CHECKIN_LEDGER_BACKEND", default="checkin.ledger.django_ledger.DjangoLedger")

# Identical codes from the same device within this window are dropped client-side.
CHECKIN_SCAN_COOLDOWN_SECONDS: float = config("CHECKIN_SCAN_COOLDOWN_SECONDS", default=3.0, cast=float)

# Default check-in window when an event does not set one explicitly.
CHECKIN_EARLY_ENTRY_MINUTES: int = config("CHECKIN_EARLY_ENTRY_MINUTES", default=60, cast=int)
CHECKIN_LATE_ENTRY_MINUTES: int = config("CHECKIN_LATE_ENTRY_MINUTES", default=120, cast=int)

CHECKIN_STATS_CACHE_SECONDS: int = config("CHECKIN_STATS_CACHE_SECONDS", default=15, cast=int)

# Lock acquire timeout for the in-memory ledger (seconds).
CHECKIN_MEMORY_LEDGER_LOCK_TIMEOUT: float = config("CHECKIN_MEMORY_LEDGER_LOCK_TIMEOUT", default=2.0, cast=float)
