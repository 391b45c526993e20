"""Programmatic uvicorn entry point for the privacy gateway.

    python -m gateway.run
    privacy-gateway            # console script from pyproject.toml

Host and port come from load_config() (127.0.0.1:8787 unless configured).
The hardened uvicorn settings below are fixed:

  limit_concurrency 100   beyond this uvicorn answers 503
  backlog 50              OS accept queue depth
  timeout_keep_alive 5    short idle window against slow clients

uvicorn's access log is off. Each request already produces one structlog
line carrying the request id and outcome code.
"""

from __future__ import annotations

import uvicorn

from gateway.config import load_config

# Kept equal to POOL_MAX_CONNECTIONS in gateway/completion.py.
UVICORN_LIMIT_CONCURRENCY: int = 100
UVICORN_BACKLOG: int = 50
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Load config and serve ``gateway.main:app``. SystemExit(1) on bad config."""
    config = load_config()

    uvicorn.run(
        "gateway.main:app",
        host=config.proxy.host,
        port=config.proxy.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
        access_log=False,
        server_header=False,
    )


if __name__ == "__main__":
    main()
