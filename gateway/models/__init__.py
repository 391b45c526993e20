"""Privacy gateway data models: payload trees, verdicts and HTTP responses."""
