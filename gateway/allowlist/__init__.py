"""Per-category field allowlists and the filter that applies them."""

from gateway.allowlist.filter import filter_payload
from gateway.allowlist.loader import (
    DEFAULT_ALLOWLISTS,
    Allowlist,
    AllowlistConfigError,
    AllowlistRegistry,
)

__all__ = [
    "DEFAULT_ALLOWLISTS",
    "Allowlist",
    "AllowlistConfigError",
    "AllowlistRegistry",
    "filter_payload",
]
