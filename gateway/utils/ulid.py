"""Request ID generation for the privacy gateway.

Every gateway request gets a 26-character ULID used as:
  - X-Gateway-Request-ID response header
  - request_id field in structured log entries

Uses the ``python-ulid`` library: do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: Crockford Base32: charset ``[0-9A-HJKMNP-TV-Z]``, exactly 26 chars.
    """
    return str(ULID())
