"""HTTP surface of the privacy gateway: routes, auth dependency, middleware."""
