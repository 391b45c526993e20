"""Statistical privacy rules applied after field filtering."""
