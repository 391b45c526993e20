"""Privacy gateway: content safety and privacy enforcement gate for AI requests."""

__version__ = "1.0.0"
