"""Root test configuration for the privacy gateway.

Sets PRIVACY_GATEWAY_AUTH_REQUIRED=false for the whole suite so pipeline and
endpoint tests do not need to send bearer tokens. Auth tests override it
with their own autouse fixture that sets it back to true.

Production default is PRIVACY_GATEWAY_AUTH_REQUIRED=true: see
gateway/api/auth.py.
"""

from __future__ import annotations

import pytest

from gateway.allowlist.loader import AllowlistRegistry
from gateway.metrics import MetricsRegistry
from gateway.pipeline import ValidationPipeline


@pytest.fixture(autouse=True)
def disable_auth_for_tests(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRIVACY_GATEWAY_AUTH_REQUIRED", "false")


@pytest.fixture(autouse=True)
def isolate_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's own config and API key out of the test run."""
    monkeypatch.delenv("PRIVACY_GATEWAY_CONFIG", raising=False)
    monkeypatch.delenv("PRIVACY_GATEWAY_PORT", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests.

    Prevents test-to-test bleed where many requests to the same endpoint within
    one minute would trigger a 429.
    """
    from gateway.api.limiter import limiter

    limiter.reset()


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def pipeline(metrics: MetricsRegistry) -> ValidationPipeline:
    """Pipeline over the built-in allowlists with a fresh registry."""
    return ValidationPipeline(AllowlistRegistry.defaults(), metrics)
