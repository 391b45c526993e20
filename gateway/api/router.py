"""Privacy gateway endpoints.

Provides:
  POST /v1/privacy-gateway         : validate ``{category, payload}``; on accept,
                                      forward the reduced payload to the AI
                                      collaborator and return its answer
  GET  /v1/privacy-gateway/metrics : the five outcome counters

Status codes:
  200  accepted and answered             ``{"ok": true, "data": ...}``
  400  pii_detected_blocked / invalid_request
  401  missing or refused bearer token
  403  privacy_threshold_blocked
  413  body over 1 MB (middleware)
  429  rate limited
  502  AI collaborator failed
  503  AI collaborator not configured, or the gateway is still starting

Rejected requests never reach the collaborator, and no response body ever
echoes any part of the submitted payload.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from gateway.api.auth import authenticate_request
from gateway.api.limiter import GATEWAY_RATE_LIMIT, limiter
from gateway.completion import AnthropicCompletionClient, CompletionError, CompletionNotConfiguredError
from gateway.models.responses import (
    build_accept_response,
    build_reject_response,
    build_upstream_unavailable_response,
)
from gateway.models.verdict import Category
from gateway.pipeline import ValidationPipeline
from gateway.utils.logger import clear_request_id, get_logger, set_request_id
from gateway.utils.ulid import generate_ulid

logger = get_logger(__name__)

router = APIRouter(tags=["privacy-gateway"])


async def _read_envelope(request: Request) -> tuple[Any, Any]:
    """Return (category, payload) from the JSON body; (None, None) if unusable."""
    try:
        body = await request.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    return body.get("category"), body.get("payload")


@router.post("/v1/privacy-gateway")
@limiter.limit(GATEWAY_RATE_LIMIT)
async def privacy_gateway(
    request: Request,
    user_id: str = Depends(authenticate_request),
) -> JSONResponse:
    """Run the validation pipeline and, on accept, the AI collaborator."""
    request_id = generate_ulid()
    set_request_id(request_id)
    try:
        category, payload = await _read_envelope(request)

        pipeline: ValidationPipeline = request.app.state.pipeline
        verdict = pipeline.validate(payload, category)
        if not verdict.accepted:
            assert verdict.reason is not None
            return build_reject_response(verdict.reason, request_id)

        resolved = Category.resolve(category)
        assert resolved is not None and verdict.payload is not None

        client: AnthropicCompletionClient = request.app.state.completion_client
        try:
            data = await client.complete(resolved, verdict.payload)
        except CompletionNotConfiguredError as exc:
            logger.error("Completion provider not configured")
            return build_upstream_unavailable_response(request_id, exc.reason, status_code=503)
        except CompletionError as exc:
            logger.warning("Completion provider unavailable", reason=exc.reason)
            return build_upstream_unavailable_response(request_id, exc.reason)

        logger.info("Completion returned", category=resolved.value)
        return build_accept_response(data, request_id)
    finally:
        clear_request_id()


@router.get("/v1/privacy-gateway/metrics")
async def privacy_gateway_metrics(request: Request) -> dict[str, int]:
    """Counters as plain integers. Never includes request content."""
    pipeline: ValidationPipeline = request.app.state.pipeline
    return pipeline.metrics.snapshot()
