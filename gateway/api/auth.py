"""Caller authentication for the privacy gateway endpoint.

Provides ``authenticate_request()``: a FastAPI Depends()-compatible async
dependency. It raises HTTP 401 BEFORE the request body is read or the
pipeline runs.

Verification itself belongs to the hosted backend. The gateway only
requires an ``Authorization: Bearer <token>`` header and hands the token to
the verifier stored in ``app.state.token_verifier``: an async callable that
returns a user id, or None to refuse. The default verifier accepts any
non-empty token; deployments replace it at startup.

Auth control:
  - PRIVACY_GATEWAY_AUTH_REQUIRED=true  → header required (default)
  - PRIVACY_GATEWAY_AUTH_REQUIRED=false → bypassed, user_id='anonymous'
    (local development and tests only)

Refused requests count as ``blocked_invalid``.
"""

from __future__ import annotations

import os
import re
from typing import Awaitable, Callable, Optional

from fastapi import HTTPException, Request

from gateway.metrics import MetricsRegistry, Outcome
from gateway.utils.logger import get_logger

logger = get_logger(__name__)

TokenVerifier = Callable[[str], Awaitable[Optional[str]]]

_BEARER_RE = re.compile(r"^Bearer\s+(\S+)$", re.IGNORECASE)


async def accept_any_token(token: str) -> Optional[str]:
    """Default verifier: any non-empty bearer token is accepted."""
    return "authenticated" if token else None


def _is_auth_required() -> bool:
    """Read PRIVACY_GATEWAY_AUTH_REQUIRED per request so tests can monkeypatch it."""
    return os.environ.get("PRIVACY_GATEWAY_AUTH_REQUIRED", "true").lower() == "true"


def _extract_bearer(authorization: str) -> Optional[str]:
    if not authorization:
        return None
    m = _BEARER_RE.match(authorization.strip())
    return m.group(1) if m else None


def _refuse(request: Request, detail: str) -> HTTPException:
    metrics: Optional[MetricsRegistry] = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.record(Outcome.BLOCKED_INVALID)
    logger.warning("Authentication failed", reason=detail, path=str(request.url.path))
    return HTTPException(status_code=401, detail=detail)


async def authenticate_request(request: Request) -> str:
    """FastAPI dependency: require and verify the caller's bearer token.

    Returns:
        The user id returned by the verifier, or 'anonymous' in bypass mode.

    Raises:
        HTTPException(401): Header missing or malformed, or the verifier
                            refused the token.
    """
    if not _is_auth_required():
        return "anonymous"

    token = _extract_bearer(request.headers.get("Authorization", ""))
    if token is None:
        raise _refuse(request, "missing_authorization")

    verifier: TokenVerifier = getattr(request.app.state, "token_verifier", accept_any_token)
    user_id = await verifier(token)
    if user_id is None:
        raise _refuse(request, "invalid_token")
    return user_id
