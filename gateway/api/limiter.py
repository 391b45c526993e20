"""Shared rate limiter for the privacy gateway endpoint.

Uses slowapi (Starlette-compatible rate limiting), keyed on the client address.
The gateway sits behind the application backend, so this is a per-caller cap
rather than a per-donor-record one.

The Limiter instance is shared between:
  - gateway/api/router.py  (route decorators)
  - gateway/main.py        (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# Validation requests per client per minute
GATEWAY_RATE_LIMIT = "60/minute"
