"""AI completion collaborator: forwards ACCEPTED payloads to the Anthropic Messages API.

Only ever called with ``Verdict.payload``: the reduced, scanned tree. Raw
request bodies never reach this module.

  - campaign:  ``system`` + ``turns`` are forwarded as the system prompt and
               message list.
  - analytics: a narrative-summary prompt is built from ``metric`` and at most
               ANALYTICS_PROMPT_MAX_ROWS ``data`` rows.

``create_http_client()`` builds the one shared ``httpx.AsyncClient``; the
lifespan owns it and the client class only borrows it.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from gateway.config import UpstreamConfig
from gateway.constants import ANALYTICS_PROMPT_MAX_ROWS
from gateway.models.verdict import Category
from gateway.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
VALID_TURN_ROLES: frozenset[str] = frozenset({"user", "assistant"})

# ─── Connection pool configuration ───────────────────────────────────────────
# Pool size matches uvicorn --limit-concurrency 100.
POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 100
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
UPSTREAM_TIMEOUT: float = 60.0  # default; per-request value comes from upstream.timeout_s


class CompletionError(Exception):
    """The collaborator failed. ``reason`` is safe to return to the caller."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CompletionNotConfiguredError(CompletionError):
    """No API key is available for the collaborator."""

    def __init__(self) -> None:
        super().__init__("not_configured")


# ─── Prompt building ──────────────────────────────────────────────────────────


def build_analytics_summary_prompt(payload: dict[str, Any]) -> str:
    """Build the narrative-summary prompt for an accepted analytics payload."""
    metric = payload.get("metric") or "unknown"
    data = payload.get("data") or []

    prompt = (
        "You are a nonprofit fundraising analyst. Provide a brief, actionable "
        "narrative summary (2-3 sentences) of the following anonymized donor analytics.\n\n"
    )
    prompt += f"**Metric**: {metric}\n\n"

    if isinstance(data, list) and data:
        rows = data[:ANALYTICS_PROMPT_MAX_ROWS]
        prompt += f"**Data**: {json.dumps(rows, indent=2)}\n\n"
        if len(data) > ANALYTICS_PROMPT_MAX_ROWS:
            prompt += f"(Showing first {ANALYTICS_PROMPT_MAX_ROWS} of {len(data)} records)\n\n"
    else:
        prompt += f"**Data**: {json.dumps(data)}\n\n"

    prompt += (
        "Provide a concise summary focusing on key insights and actionable "
        "recommendations. Do not request or reference any personally identifiable information."
    )
    return prompt


def _campaign_messages(payload: dict[str, Any]) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    for turn in payload.get("turns") or []:
        if not isinstance(turn, dict):
            continue
        role, content = turn.get("role"), turn.get("content")
        if role in VALID_TURN_ROLES and isinstance(content, str) and content:
            messages.append({"role": role, "content": content})
    return messages


def build_messages_body(
    category: Category,
    payload: dict[str, Any],
    config: UpstreamConfig,
) -> dict[str, Any]:
    """Anthropic Messages API request body for an accepted payload."""
    system = payload.get("system")
    if not isinstance(system, str) or not system:
        system = DEFAULT_SYSTEM_PROMPT

    if category is Category.ANALYTICS:
        messages = [{"role": "user", "content": build_analytics_summary_prompt(payload)}]
    else:
        messages = _campaign_messages(payload)

    return {
        "model": config.model,
        "max_tokens": config.max_tokens,
        "temperature": config.temperature,
        "system": system,
        "messages": messages,
    }


# ─── Client ───────────────────────────────────────────────────────────────────


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient.

    Created once at lifespan startup and stored in app.state.http_client.
    NEVER instantiated per request.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(UPSTREAM_TIMEOUT),
        follow_redirects=False,
    )


class AnthropicCompletionClient:
    """Thin async client over the shared httpx pool.

    Usage (in lifespan):
        app.state.completion_client = AnthropicCompletionClient(http_client, config.upstream)
    """

    def __init__(self, http_client: httpx.AsyncClient, config: UpstreamConfig) -> None:
        self._http = http_client
        self._config = config

    @property
    def configured(self) -> bool:
        return self._config.api_key is not None

    async def complete(self, category: Category, payload: dict[str, Any]) -> Any:
        """Send the accepted payload and return the provider's JSON response.

        Raises:
            CompletionNotConfiguredError: No API key in the environment.
            CompletionError: Transport failure, non-2xx status, or a body
                             that is not JSON.
        """
        api_key: Optional[str] = self._config.api_key
        if api_key is None:
            raise CompletionNotConfiguredError()

        url = self._config.anthropic.rstrip("/") + "/v1/messages"
        body = build_messages_body(category, payload, self._config)
        headers = {
            "content-type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

        try:
            with PerformanceLogger("completion", logger, warn_after_ms=self._config.timeout_s * 1000):
                response = await self._http.post(
                    url, json=body, headers=headers, timeout=self._config.timeout_s
                )
        except httpx.HTTPError as exc:
            raise CompletionError(type(exc).__name__) from exc

        if response.status_code >= 400:
            # The provider's error body may quote the prompt; log the status only.
            logger.warning("Completion provider returned an error", status_code=response.status_code)
            raise CompletionError(f"upstream_status_{response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise CompletionError("invalid_response") from exc
