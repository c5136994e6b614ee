"""HMAC signing helpers for tamper-evident identifiers.

Ticket scan codes embed a short integrity token so that a code cannot be
fabricated without the server-held secret:

    token = HMAC-SHA256(derive_key(domain, secret), message)[:length]

Security:
    - Keys are derived per domain from the configured secret, so the scan code
      key is isolated from every other use of SECRET_KEY.
    - Tokens are 32 hex chars (128 bits) by default. Codes are long-lived (they
      are printed on tickets), so unlike short-lived URL signatures there is no
      expiry to lean on.
    - Comparisons use hmac.compare_digest() to prevent timing attacks.
"""

import hashlib
import hmac
from functools import lru_cache

__all__ = [
    "DEFAULT_TOKEN_LENGTH",
    "derive_key",
    "generate_token",
    "verify_token",
]

DEFAULT_TOKEN_LENGTH = 32


@lru_cache(maxsize=8)
def derive_key(domain: str, secret: str) -> bytes:
    """Derive a signing key for ``domain`` from ``secret``.

    Args:
        domain: Domain separator, e.g. "turnstile:ticket-code:v1".
        secret: The configured secret.

    Returns:
        Bytes suitable for HMAC-SHA256 signing.
    """
    return hashlib.sha256(f"{domain}:{secret}".encode()).digest()


def generate_token(message: str, *, domain: str, secret: str, length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Generate a hex HMAC token for ``message`` truncated to ``length`` chars."""
    return hmac.new(derive_key(domain, secret), message.encode(), hashlib.sha256).hexdigest()[:length]


def verify_token(
    message: str, token: str, *, domain: str, secret: str, length: int = DEFAULT_TOKEN_LENGTH
) -> bool:
    """Check ``token`` against the expected token for ``message``.

    Returns:
        True if the token matches, False otherwise (including on length mismatch).
    """
    expected = generate_token(message, domain=domain, secret=secret, length=length)
    return hmac.compare_digest(token.lower(), expected)
