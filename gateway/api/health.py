"""Health endpoint for the privacy gateway.

  GET /health: 503 before ``app.state.ready`` is set, 200 after.

Response body (200):
    {
      "status": "ok",
      "patterns_version": "1.3.0",
      "allowlists": {"campaign": 25, "analytics": 17},
      "injection_policy": "redact",
      "completion_configured": true
    }
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from gateway.config import Config
from gateway.scanner.definitions import PATTERNS_VERSION

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Privacy gateway is starting up.",
            },
        )

    config: Config = request.app.state.config
    return {
        "status": "ok",
        "patterns_version": PATTERNS_VERSION,
        "allowlists": request.app.state.allowlists.counts(),
        "injection_policy": config.gateway.injection_policy,
        "completion_configured": request.app.state.completion_client.configured,
    }
