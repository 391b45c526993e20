"""Text normalizer/redactor: HTML to plain text, placeholder redaction, token budget."""

from gateway.sanitizer.normalize import (
    budget,
    neutralize_injection,
    normalize,
    redact,
    sanitize_to_plain_text,
)

__all__ = [
    "budget",
    "neutralize_injection",
    "normalize",
    "redact",
    "sanitize_to_plain_text",
]
