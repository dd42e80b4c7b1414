"""HMAC-signed bearer tokens and the caller-identity dependency.

# ─── HOW CALLER IDENTITY WORKS ───────────────────────────────────────
#
# Identity is issued elsewhere; this service only verifies it.  A token is
# stateless and signed with the shared ``AUTH_SECRET``:
#
#   Authorization: Bearer {uid}:{issued_at}:{hmac_hex}
#     - uid:       the caller's user id (no colons)
#     - issued_at: UTC epoch seconds
#     - hmac:      HMAC-SHA256(secret, "{uid}:{issued_at}")
#
# Validation checks:
#   1. Token has three colon-separated parts
#   2. HMAC signature is valid (constant-time comparison)
#   3. issued_at is within the TTL window and not in the future
#
# With an empty secret (local development) the ``X-Caller-Id`` header is
# trusted as-is.  Never run production without a secret.
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Annotated

from fastapi import Depends, Request

from src.config.settings import Settings

DEV_CALLER_HEADER = "X-Caller-Id"

# Accept tokens stamped slightly ahead of our clock.
_CLOCK_SKEW_SECONDS = 60


def _sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_caller_token(user_id: str, secret: str, issued_at: int | None = None) -> str:
    """Issue a bearer token for *user_id*.

    Raises
    ------
    ValueError
        If *user_id* is empty or contains ``:``, or *secret* is empty.
    """
    if not user_id or ":" in user_id:
        raise ValueError("user_id must be non-empty and must not contain ':'")
    if not secret:
        raise ValueError("secret must be non-empty")
    issued = str(int(time.time()) if issued_at is None else issued_at)
    payload = f"{user_id}:{issued}"
    return f"{payload}:{_sign(secret, payload)}"


def verify_caller_token(
    token: str,
    secret: str,
    ttl_hours: int = 168,
    now: float | None = None,
) -> str | None:
    """Return the user id carried by a valid *token*, else ``None``."""
    if not token or not secret:
        return None

    parts = token.split(":")
    if len(parts) != 3:
        return None
    user_id, issued_str, provided = parts
    if not user_id:
        return None

    expected = _sign(secret, f"{user_id}:{issued_str}")
    if not hmac.compare_digest(expected, provided):
        return None

    try:
        issued_at = int(issued_str)
    except ValueError:
        return None

    current = time.time() if now is None else now
    age = current - issued_at
    if age < -_CLOCK_SKEW_SECONDS or age > ttl_hours * 3600:
        return None
    return user_id


def resolve_caller_id(request: Request, settings: Settings) -> str | None:
    """Identify the caller of *request*, or ``None`` if unauthenticated."""
    if not settings.auth_secret:
        caller = request.headers.get(DEV_CALLER_HEADER, "").strip()
        return caller or None

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return verify_caller_token(
        token.strip(), settings.auth_secret, ttl_hours=settings.auth_token_ttl_hours
    )


def _get_caller_id(request: Request) -> str | None:
    return resolve_caller_id(request, request.app.state.settings)


# Routes receive ``None`` for anonymous callers; the services decide
# whether that is an error, so unauthenticated always maps to one status.
CallerIdDep = Annotated[str | None, Depends(_get_caller_id)]
