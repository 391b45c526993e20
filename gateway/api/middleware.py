"""Request body size limit middleware for the privacy gateway.

Bodies over MAX_REQUEST_BODY_BYTES get HTTP 413 before JSON parsing, auth
or validation. A declared Content-Length is checked without reading the
body; otherwise the stream is read with a rolling cap and cut off as soon
as it goes over.

Oversized requests are refused at the transport level and are not counted
as pipeline outcomes.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from gateway.constants import MAX_REQUEST_BODY_BYTES
from gateway.utils.logger import get_logger

logger = get_logger(__name__)


def _payload_too_large(request: Request, size: int, source: str) -> JSONResponse:
    logger.warning(
        "Request body too large",
        size=size,
        source=source,
        limit=MAX_REQUEST_BODY_BYTES,
        path=request.url.path,
    )
    return JSONResponse(status_code=413, content={"ok": False, "error": "payload_too_large"})


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than 1 MB with HTTP 413.

    Registered last in create_app() so it is the outermost layer.

      - Content-Length over the cap           → 413, body never read
      - Content-Length exactly at the cap     → passes
      - no Content-Length, stream over cap    → 413 at the first chunk past it
      - no Content-Length, stream within cap  → passes, body cached on the request
    """

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        declared = request.headers.get("content-length")

        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError:
                logger.warning("Invalid Content-Length header", path=request.url.path)
                return JSONResponse(status_code=400, content={"ok": False, "error": "invalid_request"})
            if declared_size > MAX_REQUEST_BODY_BYTES:
                return _payload_too_large(request, declared_size, "content-length")
            return await call_next(request)

        received = bytearray()
        async for chunk in request.stream():
            received.extend(chunk)
            if len(received) > MAX_REQUEST_BODY_BYTES:
                return _payload_too_large(request, len(received), "stream")

        # The stream is consumed; Request.body() returns the cached bytes.
        request._body = bytes(received)  # type: ignore[attr-defined]
        return await call_next(request)
