"""Shared constants for the privacy gateway.

All size limits, privacy floors and numeric caps used across modules are
defined here. No magic numbers in other modules: import from here.
"""

# ─── Privacy floor ───────────────────────────────────────────────────────────

# Minimum cohort size for any aggregate that may leave the trust boundary.
# Inclusive floor: N == 50 passes, N == 49 is rejected.
# Not read from config: no caller may lower it.
# Mirrors get_privacy_threshold() in the hosted store.
PRIVACY_THRESHOLD: int = 50

# Marker raised by the hosted store's enforce_privacy_ok() check. An analytics
# payload whose result.error carries this text failed the cohort check upstream.
UPSTREAM_PRIVACY_ERROR_MARKER: str = "Privacy threshold not met"

# ─── Request size limits ─────────────────────────────────────────────────────

# Maximum allowed request body size. HTTP 413 for anything larger, before any
# JSON parsing or validation happens.
MAX_REQUEST_BODY_BYTES: int = 1_048_576  # 1 MB

# ─── Payload shape limits ────────────────────────────────────────────────────

# Deepest nesting accepted by the pipeline. Deeper trees are rejected as
# invalid_request rather than walked (keeps recursion bounded).
MAX_PAYLOAD_DEPTH: int = 64

# ─── Scanner / normalizer size constants ─────────────────────────────────────

# Characters per budget unit used by budget(): the usual ~4 chars/token
# approximation for English text.
CHARS_PER_TOKEN: int = 4

# Default per-field token budget for free-text fields in accepted payloads.
DEFAULT_MAX_TEXT_TOKENS: int = 4_000

# ─── Analytics summary prompt ────────────────────────────────────────────────

# Maximum analytics rows quoted to the AI collaborator.
ANALYTICS_PROMPT_MAX_ROWS: int = 10
